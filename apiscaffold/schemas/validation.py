"""
apiscaffold/schemas/validation.py
Declarative payload validation.

The pydantic model is the schema: every field carries its rules. This
module evaluates a payload against a schema and turns pydantic's errors
into flat ``ValidationError`` records with friendly messages.
"""

from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import ValidationError as PydanticValidationError

from .base import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


class ValidationError(BaseModel):
    """A single failed rule"""
    field: str
    tag: Optional[str] = None
    value: Optional[str] = None
    message: str


# pydantic error type -> rule tag
_TAGS = {
    "missing": "required",
    "string_too_short": "min",
    "too_short": "min",
    "greater_than_equal": "min",
    "greater_than": "min",
    "string_too_long": "max",
    "too_long": "max",
    "less_than_equal": "max",
    "less_than": "max",
    "int_parsing": "numeric",
    "float_parsing": "numeric",
    "uuid_parsing": "uuid",
    "uuid_type": "uuid",
    "string_pattern_mismatch": "pattern",
}

# ctx key carrying the rule parameter for each tag
_PARAMS = {
    "min": ("min_length", "ge", "gt"),
    "max": ("max_length", "le", "lt"),
    "pattern": ("pattern",),
}


def _tag_for(error: Dict[str, Any]) -> str:
    kind = error.get("type", "")
    if kind == "value_error" and "email" in error.get("msg", "").lower():
        return "email"
    return _TAGS.get(kind, kind)


def _param_for(tag: str, error: Dict[str, Any]) -> Optional[str]:
    ctx = error.get("ctx") or {}
    for key in _PARAMS.get(tag, ()):
        if key in ctx:
            return str(ctx[key])
    return None


def friendly_message(tag: str, field: str, param: Optional[str] = None) -> str:
    """User-facing message for a rule tag"""
    if tag == "required":
        return "This field is required"
    if tag == "email":
        return "Please enter a valid email address"
    if tag == "min":
        return "Does not meet minimum length requirement"
    if tag == "max":
        return "Exceeds maximum length limit"
    if tag == "len":
        return f"Must be exactly {param} characters long"
    if tag == "alphanum":
        return "Must contain only alphanumeric characters"
    if tag == "numeric":
        return "Must contain only numeric characters"
    if tag == "uuid":
        return "Must be a valid UUID"
    if tag == "pattern":
        return "Does not match the required format"
    return f"Validation error on field: {field}"


def _field_name(loc) -> str:
    # Request validation prefixes the location with body/query/path
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or ".".join(str(p) for p in loc)


def to_validation_errors(errors: List[Dict[str, Any]]) -> List[ValidationError]:
    """Map pydantic/FastAPI error dicts to ValidationError records."""
    result = []
    for error in errors:
        field = _field_name(error.get("loc", ()))
        tag = _tag_for(error)
        param = _param_for(tag, error)
        result.append(ValidationError(
            field=field,
            tag=tag,
            value=param,
            message=friendly_message(tag, field, param),
        ))
    return result


def validate_payload(
    schema: Type[ModelT], payload: Any
) -> Tuple[Optional[ModelT], List[ValidationError]]:
    """
    Validate ``payload`` against ``schema``.

    Returns:
        (instance, []) on success, (None, errors) otherwise
    """
    try:
        return schema.model_validate(payload), []
    except PydanticValidationError as e:
        return None, to_validation_errors(e.errors())


__all__ = [
    "ValidationError",
    "friendly_message",
    "to_validation_errors",
    "validate_payload",
]
