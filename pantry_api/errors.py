"""Error taxonomy shared by the domain helpers, the CRUD layer and the routes.

Each error carries the HTTP status it is surfaced as; ``main.py`` maps them to
JSON responses.
"""
from typing import Dict, List, Optional


class PantryError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, str]]] = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class ValidationError(PantryError):
    status_code = 400
    default_message = "Validation error"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class Conflict(PantryError):
    status_code = 400
    default_message = "Resource already exists"


class Unauthorized(PantryError):
    status_code = 401
    default_message = "Could not validate credentials"


class Forbidden(PantryError):
    status_code = 403
    default_message = "Not authorized"


class NotFound(PantryError):
    status_code = 404
    default_message = "Not found"
