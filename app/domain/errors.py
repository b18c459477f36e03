"""
Domain errors shared by the settings cascade, weekly records and dashboard
"""


class SettingsValidationError(ValueError):
    """Invalid settings change: unknown field, out-of-range value or bad percentage sum"""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class RecordValidationError(ValueError):
    """Invalid weekly sales/production record"""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class SettingsNotInitialized(LookupError):
    """The settings singleton row does not exist yet"""
    pass


class PersistenceError(RuntimeError):
    """Storage-layer failure; the original exception is chained as __cause__"""
    pass


class SettingsConflictError(PersistenceError):
    """Settings row was modified by another writer since it was read"""
    pass
