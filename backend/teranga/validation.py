from __future__ import annotations

from typing import Any, Iterable, Mapping


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level missing order, item, transaction or user."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., deleting an order with delivered items)."""


def require_choice(field: str, value: Any, choices: Iterable[str]) -> str:
    """Trimmed string value that must belong to choices."""
    allowed = tuple(choices)
    s = str(value).strip() if value is not None else ""
    if s not in allowed:
        raise ValidationError(f"Invalid {field}: {value!r}. Must be one of {list(allowed)}")
    return s


def get_pagination(args: Mapping[str, Any], default_limit: int = 50, max_limit: int = 200) -> tuple[int, int, int]:
    """
    Parse limit/page/offset query arguments.

    - limit is clamped to [1, max_limit]
    - page (1-based) wins over offset when both are given

    Returns (limit, offset, page).
    """
    def _int(raw, default):
        try:
            return int(raw)
        except (TypeError, ValueError):
            return default

    limit = min(max(_int(args.get("limit"), default_limit), 1), max_limit)

    raw_page = args.get("page")
    if raw_page not in (None, ""):
        page = max(_int(raw_page, 1), 1)
        return limit, (page - 1) * limit, page

    offset = max(_int(args.get("offset"), 0), 0)
    return limit, offset, offset // limit + 1
