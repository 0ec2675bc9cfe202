"""Unified problem loader."""

import json
import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

from ...exceptions import ConfigFileError, ValidationError
from ..models import Course, SchoolClass, Teacher, TeachingPlan
from ..rooms import RoomTypeCatalog
from ..rules import AlgorithmConfig, SchedulingRules
from .rooms import RoomConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConfigLoader:
    """Unified loader for all files of a problem directory."""

    def __init__(self, config_dir: Path | None = None):
        """
        Initialize configuration loader.

        Args:
            config_dir: Path to directory containing problem files.
                       Expected files:
                       - rooms.csv
                       - classes.json
                       - courses.json
                       - teaching-plans.json
                       - teachers.json (optional)
                       - rules.json (optional)
                       - algorithm.json (optional)
                       - room-types.json (optional)
        """
        if config_dir is None:
            config_dir = Path("reference")

        self.config_dir = Path(config_dir)
        if not self.config_dir.is_dir():
            raise ConfigFileError(str(self.config_dir), "not a directory")

        self.errors: list[ValidationError] = []

        rooms_path = self._require("rooms.csv")
        self.room_config = RoomConfig(rooms_path)
        self.errors.extend(self.room_config.errors)

        self.classes = self._load_items("classes.json", SchoolClass.from_dict, required=True)
        self.courses = self._load_items("courses.json", Course.from_dict, required=True)
        self.teaching_plans = self._load_items("teaching-plans.json", TeachingPlan.from_dict, required=True)
        self.teachers = self._load_items("teachers.json", Teacher.from_dict)

        self.rules = SchedulingRules.from_dict(self._load_json(self._get_path("rules.json")))
        self.algorithm = AlgorithmConfig.from_dict(self._load_json(self._get_path("algorithm.json")))
        self.catalog = RoomTypeCatalog.from_dict(self._load_json(self._get_path("room-types.json")))

    @property
    def rooms(self):
        return self.room_config.rooms

    def _get_path(self, filename: str) -> Path | None:
        """Get path to a config file if it exists."""
        path = self.config_dir / filename
        return path if path.exists() else None

    def _require(self, filename: str) -> Path:
        path = self._get_path(filename)
        if path is None:
            raise ConfigFileError(str(self.config_dir / filename), "required file is missing")
        return path

    @staticmethod
    def _load_json(path: Path | None) -> Any:
        if path is None:
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigFileError(str(path), str(e)) from e

    def _load_items(
        self,
        filename: str,
        factory: Callable[[dict[str, Any]], T],
        required: bool = False,
    ) -> list[T]:
        path = self._require(filename) if required else self._get_path(filename)
        data = self._load_json(path)
        if data is None:
            return []
        if not isinstance(data, list):
            raise ConfigFileError(str(path), "expected a JSON array")

        items = []
        for raw in data:
            try:
                items.append(factory(raw))
            except (ValidationError, KeyError, TypeError, ValueError) as e:
                error = e if isinstance(e, ValidationError) else ValidationError(str(raw)[:60], str(e))
                logger.warning(f"Skipping entry in {filename}: {error}")
                self.errors.append(error)
        return items
