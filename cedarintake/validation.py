"""JSON Schema validation engine for Cedar Intake.

This module provides a ValidationEngine that validates form data against
JSON Schema definitions and produces structured validation results. The
same engine backs full-record validation on the server and per-step
validation in the form wizard.

Schemas may attach user-facing messages to a property with the
``errorMessage`` keyword, either a single string used for every violation
of that property, or a mapping from validator name ("required",
"minLength", "format", ...) to message with an optional "default" entry:

    {"company": {"type": "string", "minLength": 1,
                 "errorMessage": "Company name is required"}}

Properties without a custom message get a generic description of the
violated rule.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import jsonschema
from jsonschema import Draft7Validator, FormatChecker

from cedarintake.errors import FieldError
from cedarintake.types import FieldErrorCode

# validator name -> (error code, default message builder taking (path, rule value))
_RULES: Dict[str, Tuple[FieldErrorCode, Callable[[str, Any], str]]] = {
    "type": (FieldErrorCode.INVALID_TYPE, lambda p, v: f"Field '{p}' must be of type {v}"),
    "format": (FieldErrorCode.INVALID_FORMAT, lambda p, v: f"Field '{p}' must be a valid {v}"),
    "pattern": (FieldErrorCode.INVALID_FORMAT, lambda p, v: f"Field '{p}' must match {v}"),
    "enum": (FieldErrorCode.INVALID_VALUE, lambda p, v: f"Field '{p}' must be one of: {', '.join(map(str, v))}"),
    "const": (FieldErrorCode.INVALID_VALUE, lambda p, v: f"Field '{p}' must be {v!r}"),
    "minLength": (FieldErrorCode.TOO_SHORT, lambda p, v: f"Field '{p}' needs at least {v} characters"),
    "minItems": (FieldErrorCode.TOO_SHORT, lambda p, v: f"Field '{p}' needs at least {v} selections"),
    "maxLength": (FieldErrorCode.TOO_LONG, lambda p, v: f"Field '{p}' allows at most {v} characters"),
    "maxItems": (FieldErrorCode.TOO_LONG, lambda p, v: f"Field '{p}' allows at most {v} selections"),
    "minimum": (FieldErrorCode.INVALID_VALUE, lambda p, v: f"Field '{p}' must be at least {v}"),
    "exclusiveMinimum": (FieldErrorCode.INVALID_VALUE, lambda p, v: f"Field '{p}' must be greater than {v}"),
    "maximum": (FieldErrorCode.INVALID_VALUE, lambda p, v: f"Field '{p}' must be at most {v}"),
    "exclusiveMaximum": (FieldErrorCode.INVALID_VALUE, lambda p, v: f"Field '{p}' must be less than {v}"),
}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking one payload against a schema.

    Attributes:
        is_valid: True when no rule was violated
        errors: Translated field errors, in the order jsonschema reported them
        data: The payload that was checked

    Examples:
        >>> engine = ValidationEngine({'type': 'object', 'required': ['name']})
        >>> result = engine.validate({'name': 'Ada'})
        >>> result.is_valid, result.errors
        (True, [])
    """
    is_valid: bool
    errors: List[FieldError]
    data: Optional[Dict[str, Any]] = None

    @property
    def missing_fields(self) -> List[str]:
        return [e.path for e in self.errors if e.code == FieldErrorCode.REQUIRED]

    @property
    def invalid_fields(self) -> List[str]:
        return [e.path for e in self.errors if e.code != FieldErrorCode.REQUIRED]

    def first_errors(self) -> Dict[str, str]:
        """Map each failing top-level field to the message of its first violated rule.

        Examples:
            >>> schema = {'type': 'object', 'properties': {'email': {'type': 'string', 'format': 'email'}}}
            >>> ValidationEngine(schema).validate({'email': 'nope'}).first_errors()
            {'email': "Field 'email' must be a valid email"}
        """
        result: Dict[str, str] = {}
        for error in self.errors:
            result.setdefault(error.path.split(".")[0], error.message)
        return result

    def summary(self) -> str:
        """Aggregate every field error into one human-readable message."""
        if self.is_valid:
            return ""
        parts = [f'{e.message} at "{e.path}"' if e.path else e.message for e in self.errors]
        return "Validation error: " + "; ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "missingFields": self.missing_fields,
            "invalidFields": self.invalid_fields,
        }
        if self.data is not None:
            body["data"] = self.data
        return body


class ValidationEngine:
    """Checks form payloads against a Draft 7 JSON Schema.

    Format checking is on, so "email" and "date" formats are enforced.
    Every jsonschema error becomes a FieldError carrying a dotted path, a
    FieldErrorCode and a message, preferring the schema's own errorMessage.

    Attributes:
        schema: The JSON Schema definition
        validator: The compiled Draft7Validator

    Examples:
        >>> engine = ValidationEngine({
        ...     'type': 'object',
        ...     'properties': {'email': {'type': 'string', 'format': 'email'}},
        ...     'required': ['name', 'email'],
        ... })
        >>> [e.code.value for e in engine.validate({'email': 'nope'}).errors]
        ['invalid_format', 'required']
    """

    def __init__(self, schema: Dict[str, Any]) -> None:
        """Compile the schema.

        Raises:
            jsonschema.SchemaError: If the schema itself is malformed
        """
        Draft7Validator.check_schema(schema)
        self.schema = schema
        self.validator = Draft7Validator(schema, format_checker=FormatChecker())

    @property
    def fields(self) -> List[str]:
        """Top-level property names declared by the schema."""
        return list(self.schema.get("properties", {}))

    def clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Drop keys the schema does not declare.

        Schemas without a "properties" section accept everything.
        """
        properties = self.schema.get("properties")
        if properties is None:
            return dict(data)
        return {key: value for key, value in data.items() if key in properties}

    def validate(self, data: Any) -> ValidationResult:
        """Validate a payload and translate every violation.

        Examples:
            >>> engine = ValidationEngine({'type': 'object', 'required': ['email']})
            >>> engine.validate({}).errors[0].code
            <FieldErrorCode.REQUIRED: 'required'>
        """
        field_errors: List[FieldError] = []
        for error in self.validator.iter_errors(data):
            if error.validator == "additionalProperties":
                field_errors.extend(self._translate_unexpected(error))
            elif error.validator == "required":
                field_errors.append(self._translate_missing(error))
            else:
                field_errors.append(self._translate_error(error))

        return ValidationResult(is_valid=not field_errors, errors=field_errors, data=data)

    def _custom_message(self, field: str, validator: str) -> Optional[str]:
        """Look up the errorMessage a schema attaches to a top-level property."""
        prop_schema = self.schema.get("properties", {}).get(field)
        if not isinstance(prop_schema, dict):
            return None
        custom = prop_schema.get("errorMessage")
        if isinstance(custom, dict):
            return custom.get(validator) or custom.get("default")
        return custom if isinstance(custom, str) else None

    def _translate_missing(self, error: jsonschema.ValidationError) -> FieldError:
        parent = ".".join(str(p) for p in error.path)
        # jsonschema phrases this as "'<name>' is a required property"
        name = error.message.split("'")[1] if "'" in error.message else "field"
        path = f"{parent}.{name}" if parent else name
        custom = None if parent else self._custom_message(name, "required")
        return FieldError(
            path=path,
            code=FieldErrorCode.REQUIRED,
            message=custom or f"Field '{path}' is required but was not provided",
            expected="required field",
        )

    def _translate_unexpected(self, error: jsonschema.ValidationError) -> List[FieldError]:
        """One FieldError per key a closed schema does not allow."""
        declared = error.schema.get("properties", {})
        parent = ".".join(str(p) for p in error.path)
        results = []
        for key in sorted(k for k in error.instance if k not in declared):
            path = f"{parent}.{key}" if parent else key
            results.append(FieldError(
                path=path,
                code=FieldErrorCode.INVALID_VALUE,
                message=f"Field '{path}' is not allowed here",
                expected=sorted(declared),
                received=key,
            ))
        return results

    def _translate_error(self, error: jsonschema.ValidationError) -> FieldError:
        """Map a single-value rule violation through ``_RULES``; unknown rules become CUSTOM."""
        path = ".".join(str(p) for p in error.path)
        validator = str(error.validator)
        # A property's errorMessage describes the property itself, not its array items
        custom = self._custom_message(str(error.path[0]), validator) if len(error.path) == 1 else None

        if validator in _RULES:
            code, describe = _RULES[validator]
            default = describe(path, error.validator_value)
        else:
            code, default = FieldErrorCode.CUSTOM, f"Field '{path}' validation failed: {error.message}"

        received = type(error.instance).__name__ if validator == "type" else error.instance
        return FieldError(
            path=path,
            code=code,
            message=custom or default,
            expected=error.validator_value,
            received=received,
        )


__all__ = [
    "ValidationEngine",
    "ValidationResult",
]
