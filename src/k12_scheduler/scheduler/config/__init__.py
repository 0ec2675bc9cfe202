"""Loading of problem directories (rooms, classes, plans, rules)."""

from .loader import ConfigLoader
from .rooms import RoomConfig

__all__ = ["ConfigLoader", "RoomConfig"]
