# hmjaya/errors.py
from __future__ import annotations


class ActionError(Exception):
    """
    A business rule refused the action.
    The message is shown to the user as-is in {"success": false, "error": ...}.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(ActionError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)
