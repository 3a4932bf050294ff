"""Input sanitising and the shared pieces of request validation.

Request bodies are pydantic models (see `schemas.py` and
`filters.FilterSpec`). This module holds the annotated field types those
models are built from and the helpers that turn pydantic errors into the
``{message, errors}`` body of a 400 response.

Every text field is sanitised by a before-validator, so length and content
rules are checked against the value that will actually be stored.
"""

import re
from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BeforeValidator, StringConstraints
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import as_utc

ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")
_TAG_RE = re.compile(r"<[^>]*>?")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_VALUE_ERROR_PREFIX = "Value error, "


def is_valid_id(value) -> bool:
    """Return True if `value` is a syntactically valid entity identifier."""
    return isinstance(value, str) and bool(ID_PATTERN.match(value))


def sanitize_string(value, max_length: Optional[int] = None) -> str:
    """Trim, strip HTML tags and control characters, optionally cap the length.

    Non-string input yields an empty string.
    """
    if not isinstance(value, str):
        return ""
    cleaned = _CONTROL_RE.sub("", _TAG_RE.sub("", value.strip())).strip()
    return cleaned[:max_length] if max_length is not None else cleaned


def _clean(value):
    return sanitize_string(value) if isinstance(value, str) else value


def _blank_to_none(value):
    if isinstance(value, str):
        return sanitize_string(value) or None
    return value


def _no_operator(value: str) -> str:
    if value.startswith("$"):
        raise ValueError("cannot start with $")
    return value


def _valid_id(value: str) -> str:
    if not is_valid_id(value):
        raise ValueError("must be a valid id")
    return value


def _unwrap_ref(value):
    # populated references arrive as {_id, ...} objects
    if isinstance(value, dict):
        return value.get("_id")
    return value


def _reject_bool(value):
    if isinstance(value, bool):
        raise ValueError("must be a number")
    return value


def text(max_length: int, min_length: int = 1):
    """A sanitised string; length rules apply to the sanitised value."""
    return Annotated[
        str,
        StringConstraints(min_length=min_length, max_length=max_length),
        BeforeValidator(_clean),
    ]


def blank_means_absent(field_type):
    """Wrap `field_type` so absent or blank input means "not given"."""
    return Annotated[Optional[field_type], BeforeValidator(_blank_to_none)]


def optional_text(max_length: int):
    """A sanitised optional string; blank input means "not given"."""
    return blank_means_absent(text(max_length))


def operator_free(max_length: int):
    """Sanitised text that can never be read as a query operator."""
    return Annotated[text(max_length), AfterValidator(_no_operator)]


Id = Annotated[str, AfterValidator(_valid_id)]
IdRef = Annotated[Id, BeforeValidator(_unwrap_ref)]
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
NotBool = BeforeValidator(_reject_bool)


def describe_errors(errors) -> List[str]:
    """Flatten pydantic error dicts into ``"field: message"`` strings."""
    messages = []
    for err in errors:
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        msg = err.get("msg", "invalid value")
        if msg.startswith(_VALUE_ERROR_PREFIX):
            msg = msg[len(_VALUE_ERROR_PREFIX):]
        if err.get("type") == "missing":
            messages.append(f"{field} is required")
        elif field:
            messages.append(f"{field}: {msg}")
        else:
            messages.append(msg)
    return messages


def check_body(model, body) -> List[str]:
    """Return every violation of `model` found in `body` (empty when valid)."""
    try:
        model.model_validate(body)
    except PydanticValidationError as exc:
        return describe_errors(exc.errors())
    return []


def require_valid(model, body):
    """Validate `body` against `model` and return the model instance.

    Raises `ValidationError` listing every violation.
    """
    try:
        return model.model_validate(body)
    except PydanticValidationError as exc:
        raise ValidationError(describe_errors(exc.errors())) from exc


def require_id(value, name: str = "id") -> str:
    """Validate a path identifier; raises `ValidationError` when malformed."""
    if not is_valid_id(value):
        raise ValidationError([f"Invalid {name}. Must be a valid id."], message=f"Invalid {name}")
    return value
