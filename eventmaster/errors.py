from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(eq=False)
class ApiError(Exception):
    message: str
    status: int = 400
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self):
        data = {'message': self.message}
        if self.errors:
            data['errors'] = self.errors
        return data


class NotFound(ApiError):
    def __init__(self, message='Not found'):
        super().__init__(message, 404)


class Forbidden(ApiError):
    def __init__(self, message='Access denied'):
        super().__init__(message, 403)


class Conflict(ApiError):
    """Uniqueness violation (duplicate email, booking reference)."""

    def __init__(self, message='Already exists'):
        super().__init__(message, 400)
