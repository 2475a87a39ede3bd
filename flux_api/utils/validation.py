"""
Request validation helpers.

FastAPI validates request bodies and query strings against pydantic models
before a handler runs. These helpers turn pydantic's error list into the
field-level map returned to clients.
"""

from typing import Any, Dict, Iterable, List, Mapping, Sequence

# Location prefixes added by FastAPI that carry no field information
_SOURCE_PREFIXES = {"body", "query", "path", "header", "cookie"}

ROOT_FIELD = "_root"


def _field_name(loc: Sequence[Any]) -> str:
    parts = list(loc)
    if parts and parts[0] in _SOURCE_PREFIXES:
        parts = parts[1:]
    if not parts:
        return ROOT_FIELD
    return ".".join(str(part) for part in parts)


def _message(error: Mapping[str, Any]) -> str:
    msg = str(error.get("msg", "Invalid value"))
    # pydantic prefixes messages raised from custom validators
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return msg


def flatten_errors(errors: Iterable[Mapping[str, Any]]) -> Dict[str, List[str]]:
    """
    Group validation errors by field name.

    ``[{"loc": ("body", "email"), "msg": "Field required"}]`` becomes
    ``{"email": ["Field required"]}``. Errors without a field location (for
    instance a body that is not JSON) are grouped under ``_root``.
    """
    details: Dict[str, List[str]] = {}
    for error in errors:
        if error.get("type") == "json_invalid":
            field = ROOT_FIELD
        else:
            field = _field_name(error.get("loc", ()))
        messages = details.setdefault(field, [])
        message = _message(error)
        if message not in messages:
            messages.append(message)
    return details
