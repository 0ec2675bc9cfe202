"""Custom exceptions for the K-12 scheduler."""


class SchedulerError(Exception):
    """Base exception for scheduler errors."""

    pass


class ValidationError(SchedulerError):
    """Malformed input item (teaching plan entry, rule, reference record)."""

    def __init__(self, item_id: str, reason: str, field: str | None = None):
        self.item_id = item_id
        self.reason = reason
        self.field = field
        location = f" (field '{field}')" if field else ""
        super().__init__(f"Invalid item '{item_id}'{location}: {reason}")


class InternalInconsistencyError(SchedulerError):
    """Schedule state invariant broken. Signals a logic defect, aborts the run."""

    def __init__(self, message: str, details: dict | None = None):
        self.details = details or {}
        super().__init__(f"Internal inconsistency: {message}")


class ConfigFileError(SchedulerError):
    """Problem directory file is missing or cannot be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load '{path}': {reason}")
