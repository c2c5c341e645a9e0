# errors.py
"""Error taxonomy shared by the stores, the toggle engine and the web layer."""


class HabitError(Exception):
    """Base class; ``status_code`` is what the web layer answers with."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    @property
    def public_message(self) -> str:
        return self.message


class ValidationError(HabitError):
    status_code = 400


class AuthenticationError(HabitError):
    status_code = 401


class NotFoundError(HabitError):
    status_code = 404


class ConflictError(HabitError):
    status_code = 409


class StorageError(HabitError):
    """Store unreachable or corrupt. Detail is logged, never shown."""

    status_code = 500

    @property
    def public_message(self) -> str:
        return "Storage unavailable"
