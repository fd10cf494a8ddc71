from __future__ import annotations

from typing import Any, Optional

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def as_year(value: Any) -> str:
    """Years arrive as ints from forms and as strings from the API."""
    return str(value).strip() if value is not None else ""


def as_division(value: Any) -> Optional[str]:
    """Normalize missing divisions (None, '', 'common') to None."""
    if value is None:
        return None
    v = str(value).strip()
    if not v or v == "common":
        return None
    return v
