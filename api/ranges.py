"""
Range filter parsing for list endpoints.

A range narrows a listing to records whose ``created_at`` falls inside
``[start, end]``. Either bound may be left out.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

from api.errors import InvalidRequestError

RANGE_BOUNDS = ("start", "end")


class RangeSpec(BaseModel):
    """Validated inclusive interval; empty when neither bound is set."""
    start: Optional[datetime] = Field(None, description="Inclusive lower bound")
    end: Optional[datetime] = Field(None, description="Inclusive upper bound")

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None


def parse_timestamp(value: Any, end_of_day: bool = False) -> datetime:
    """
    Parse an ISO-8601 date or datetime into a naive UTC datetime.

    A bare date maps to the start of that day, or to its last microsecond
    when ``end_of_day`` is set.

    Raises:
        ValueError: If the value is not a timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.max if end_of_day else time.min)
    elif isinstance(value, str):
        text = value.strip()
        try:
            day = date.fromisoformat(text)
        except ValueError:
            parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
        else:
            parsed = datetime.combine(day, time.max if end_of_day else time.min)
    else:
        raise ValueError(f"unsupported timestamp type: {type(value).__name__}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_range(raw: Optional[Any]) -> RangeSpec:
    """
    Validate a raw range into a RangeSpec.

    Args:
        raw: None, or a mapping with optional ``start`` and ``end`` entries

    Returns:
        RangeSpec, empty when no range was supplied

    Raises:
        InvalidRequestError: If a bound is not a timestamp or start is after end
    """
    if raw is None:
        return RangeSpec()
    if not isinstance(raw, Mapping):
        raise InvalidRequestError(["range must be given as range[start] and/or range[end]"])

    bounds = {}
    errors = []
    for bound in RANGE_BOUNDS:
        value = raw.get(bound)
        if _is_blank(value):
            continue
        try:
            bounds[bound] = parse_timestamp(value, end_of_day=bound == "end")
        except ValueError:
            errors.append(f"range {bound} is not a valid timestamp")

    if not errors and "start" in bounds and "end" in bounds and bounds["start"] > bounds["end"]:
        errors.append("range start must not be after range end")

    if errors:
        raise InvalidRequestError(errors)
    return RangeSpec(**bounds)


def range_from_query(params: Mapping[str, Any]) -> Optional[Any]:
    """
    Pull the range out of query parameters.

    Accepts ``range[start]``/``range[end]`` and ``range_start``/``range_end``.
    A bare ``range`` value is passed through so parse_range can reject it.
    """
    bounds: Dict[str, Any] = {}
    for bound in RANGE_BOUNDS:
        for key in (f"range[{bound}]", f"range_{bound}"):
            if key in params:
                bounds[bound] = params[key]
                break

    if bounds:
        return bounds
    return params.get("range")
