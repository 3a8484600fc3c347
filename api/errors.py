"""
Error types raised by the request handlers.

Handlers raise these and the exception handler in ``api.main`` renders
them, so no error travels past the request that caused it.
"""

from typing import Any, Dict, List, Union

from pydantic import ValidationError

ErrorMessages = Union[List[str], Dict[str, List[str]]]


class APIError(Exception):
    """Base class for errors that map onto a client-error response."""

    status_code: int = 400

    def __init__(self, payload: Dict[str, Any]):
        super().__init__(payload)
        self.payload = payload


class InvalidRequestError(APIError):
    """
    Invalid request parameters or record attributes.

    ``errors`` is either a flat list of messages (parameter validation)
    or a mapping of field name to messages (record validation).
    """

    status_code = 400

    def __init__(self, errors: ErrorMessages):
        super().__init__({"errors": errors})
        self.errors = errors


class NotFoundError(APIError):
    """The requested record does not exist."""

    status_code = 404

    def __init__(self, message: str):
        super().__init__({"message": message})
        self.message = message


def field_errors(exc: ValidationError) -> Dict[str, List[str]]:
    """
    Convert a pydantic ValidationError into a field -> messages mapping.

    Args:
        exc: Error raised while validating record attributes

    Returns:
        Dictionary keyed by the first element of each error location
    """
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        location = error.get("loc") or ("base",)
        field = str(location[0])
        errors.setdefault(field, []).append(error["msg"])
    return errors
