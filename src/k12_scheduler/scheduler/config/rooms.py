"""Room configuration loader."""

import csv
import logging
from pathlib import Path

from ...exceptions import ConfigFileError, ValidationError
from ..models import Room

logger = logging.getLogger(__name__)

TRUE_VALUES = {"true", "1", "yes", "y"}


class RoomConfig:
    """Loader for room configuration from rooms.csv.

    Columns: id, name, type, capacity, equipment (';'-separated), building,
    floor, room_number, assigned_class, is_active.
    """

    def __init__(self, rooms_path: Path | None = None):
        self.rooms: list[Room] = []
        self.errors: list[ValidationError] = []
        self._by_id: dict[str, Room] = {}

        if rooms_path and rooms_path.exists():
            self._load(rooms_path)

    def _load(self, path: Path) -> None:
        """Load rooms from CSV file."""
        try:
            with open(path, encoding="utf-8") as f:
                rows = list(csv.DictReader(f))
        except (OSError, csv.Error) as e:
            raise ConfigFileError(str(path), str(e)) from e

        for line, row in enumerate(rows, start=2):
            try:
                room = self._parse_row(row, line)
            except ValidationError as e:
                logger.warning(f"Skipping room in {path.name}: {e}")
                self.errors.append(e)
                continue
            if room.id in self._by_id:
                error = ValidationError(room.id, f"duplicate room id at line {line}", "id")
                logger.warning(f"Skipping room in {path.name}: {error}")
                self.errors.append(error)
                continue
            self.rooms.append(room)
            self._by_id[room.id] = room

    @staticmethod
    def _parse_row(row: dict[str, str], line: int) -> Room:
        room_id = (row.get("id") or "").strip()
        if not room_id:
            raise ValidationError(f"line {line}", "missing room id", "id")
        try:
            capacity = int(row.get("capacity") or 0)
            floor_value = (row.get("floor") or "").strip()
            floor = int(floor_value) if floor_value else None
        except ValueError as e:
            raise ValidationError(room_id, f"not a number: {e}") from e
        equipment = [item.strip() for item in (row.get("equipment") or "").split(";") if item.strip()]
        is_active = (row.get("is_active") or "true").strip().lower() in TRUE_VALUES
        return Room(
            id=room_id,
            name=(row.get("name") or room_id).strip(),
            type=(row.get("type") or "classroom").strip(),
            capacity=capacity,
            equipment=equipment,
            building=(row.get("building") or "").strip(),
            floor=floor,
            room_number=(row.get("room_number") or "").strip(),
            assigned_class=(row.get("assigned_class") or "").strip() or None,
            is_active=is_active,
        )

    def get_room(self, room_id: str) -> Room | None:
        """Get a room by id."""
        return self._by_id.get(room_id)

    def get_active_rooms(self) -> list[Room]:
        return [r for r in self.rooms if r.is_active]

    def get_rooms_by_type(self, room_type: str) -> list[Room]:
        return [r for r in self.rooms if r.type == room_type]
