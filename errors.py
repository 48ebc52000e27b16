from typing import Optional


class ForumError(Exception):
    message = "Something went wrong."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class NotFound(ForumError):
    message = "Not found."


class Unauthenticated(ForumError):
    message = "You must be signed in."

    def __init__(self, return_to: Optional[str] = None):
        super().__init__()
        self.return_to = return_to


class ValidationError(ForumError):
    message = "Invalid input."

    def __init__(self, message: Optional[str] = None, data: Optional[dict] = None):
        super().__init__(message)
        self.data = data or {}


class InvalidPage(ValidationError):
    message = "Invalid page!"


class StoreError(ForumError):
    message = "The database is unavailable."
