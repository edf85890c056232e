"""Validation and coercion of custom field data against field definitions.

Raw ``validation_rules`` maps are parsed into one typed record per field kind
(:class:`TextRules`, :class:`NumberRules`, :class:`DateRules`) and every field
type is handled by exactly one entry of ``_VALIDATORS``.
"""
from __future__ import annotations

import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import (
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from mssp.core.errors import CustomFieldValidationError, FieldError
from mssp.models.field import SELECT_FIELD_TYPES, FieldDefinition, FieldType

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
PHONE_SEPARATORS = re.compile(r"[\s\-()]")
TRUE_STRINGS = frozenset({"true", "1", "yes"})
FALSE_STRINGS = frozenset({"false", "0", "no"})
PERCENTAGE_RANGE = (0, 100)
# Signed 64-bit, the range of the BigInteger storage column.
INTEGER_RANGE = (-(2**63), 2**63 - 1)
INTEGER_MAX_DIGITS = 19

_URL_ADAPTER: TypeAdapter[AnyUrl] = TypeAdapter(AnyUrl)


class FieldValueError(ValueError):
    """Raised when a single value fails its type-specific check."""


class _Rules(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)


class NoRules(_Rules):
    """Rules for field kinds that accept no constraints."""


class TextRules(_Rules):
    min_length: int | None = Field(default=None, ge=0, alias="minLength")
    max_length: int | None = Field(default=None, ge=0, alias="maxLength")
    pattern: str | None = None

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            re.compile(value)
        except re.error as exc:
            msg = f"pattern is not a valid regular expression: {exc}"
            raise ValueError(msg) from exc
        return value

    @model_validator(mode="after")
    def validate_length_bounds(self) -> "TextRules":
        if (
            self.min_length is not None
            and self.max_length is not None
            and self.min_length > self.max_length
        ):
            msg = "minLength must not exceed maxLength"
            raise ValueError(msg)
        return self


class NumberRules(_Rules):
    min: int | float | None = None
    max: int | float | None = None
    decimal_places: int | None = Field(default=None, ge=0, alias="decimalPlaces")

    @model_validator(mode="after")
    def validate_bounds(self) -> "NumberRules":
        if self.min is not None and self.max is not None and self.min > self.max:
            msg = "min must not exceed max"
            raise ValueError(msg)
        return self


class DateRules(_Rules):
    min_date: str | None = Field(default=None, alias="minDate")
    max_date: str | None = Field(default=None, alias="maxDate")

    @field_validator("min_date", "max_date")
    @classmethod
    def validate_bound(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            _coerce_datetime(value)
        except FieldValueError as exc:
            msg = "date bounds must be ISO 8601 dates or datetimes"
            raise ValueError(msg) from exc
        return value

    @model_validator(mode="after")
    def validate_range(self) -> "DateRules":
        if self.min_date is not None and self.max_date is not None:
            if _coerce_datetime(self.min_date) > _coerce_datetime(self.max_date):
                msg = "minDate must not be after maxDate"
                raise ValueError(msg)
        return self


RULES_BY_TYPE: dict[FieldType, type[_Rules]] = {
    FieldType.TEXT_SINGLE_LINE: TextRules,
    FieldType.TEXT_MULTI_LINE: TextRules,
    FieldType.TEXT_RICH: TextRules,
    FieldType.NUMBER_INTEGER: NumberRules,
    FieldType.NUMBER_DECIMAL: NumberRules,
    FieldType.CURRENCY: NumberRules,
    FieldType.PERCENTAGE: NumberRules,
    FieldType.DATE: DateRules,
    FieldType.DATETIME: DateRules,
}


def parse_validation_rules(
    field_type: FieldType, raw_rules: Mapping[str, Any] | None
) -> _Rules:
    """Parse a raw rules map into the typed record for ``field_type``."""

    rules_model = RULES_BY_TYPE.get(field_type, NoRules)
    return rules_model.model_validate(dict(raw_rules or {}))


def normalize_validation_rules(
    field_type: FieldType, raw_rules: Mapping[str, Any] | None
) -> dict[str, Any] | None:
    """Return the canonical camelCase form of ``raw_rules`` for storage."""

    normalized = parse_validation_rules(field_type, raw_rules).model_dump(
        by_alias=True, exclude_none=True
    )
    return normalized or None


@dataclass(frozen=True)
class FieldSpec:
    """Typed view of a field definition used while validating values."""

    name: str
    label: str
    field_type: FieldType
    rules: _Rules
    options: tuple[str, ...] = ()
    is_required: bool = False
    is_active: bool = True

    @classmethod
    def from_definition(cls, definition: FieldDefinition) -> "FieldSpec":
        return cls(
            name=definition.name,
            label=definition.label,
            field_type=definition.field_type,
            rules=parse_validation_rules(definition.field_type, definition.validation_rules),
            options=tuple(definition.select_options or ())
            if definition.has_select_options
            else (),
            is_required=bool(definition.is_required),
            is_active=bool(definition.is_active),
        )


def validate_custom_field_data(
    raw_data: Mapping[str, Any] | None,
    definitions: Mapping[str, FieldDefinition],
    *,
    existing: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Validate ``raw_data`` and return the coerced values keyed by field name.

    ``existing`` holds values already stored for the entity; a required field
    absent from ``raw_data`` is satisfied when it has a non-null existing value.
    Raises :class:`CustomFieldValidationError` listing every problem found.
    """

    raw_data = raw_data or {}
    existing = existing or {}
    errors: list[FieldError] = []
    validated: dict[str, Any] = {}

    for name, definition in definitions.items():
        if not definition.is_active or not definition.is_required:
            continue
        if raw_data.get(name) is not None:
            continue
        if name not in raw_data and existing.get(name) is not None:
            continue
        errors.append(FieldError(name, f"Required field '{definition.label}' is missing"))

    for name, value in raw_data.items():
        definition = definitions.get(name)
        if definition is None:
            errors.append(FieldError(name, f"Unknown custom field '{name}'"))
            continue
        if not definition.is_active:
            errors.append(FieldError(name, f"Custom field '{name}' is no longer active"))
            continue
        if value is None:
            if not definition.is_required:
                validated[name] = None
            continue

        try:
            spec = FieldSpec.from_definition(definition)
        except ValidationError:
            errors.append(FieldError(name, "Field definition has invalid validation rules"))
            continue

        try:
            validated[name] = coerce_value(spec, value)
        except FieldValueError as exc:
            errors.append(FieldError(name, str(exc)))

    if errors:
        raise CustomFieldValidationError(errors)
    return validated


def validate_field_value(definition: FieldDefinition, value: Any) -> Any:
    """Validate a single value against ``definition``."""

    return validate_custom_field_data({definition.name: value}, {definition.name: definition})[
        definition.name
    ]


def coerce_value(spec: FieldSpec, value: Any) -> Any:
    """Coerce one non-null value, raising :class:`FieldValueError` on failure."""

    validator = _VALIDATORS.get(spec.field_type)
    if validator is None:  # pragma: no cover - every FieldType is registered
        raise FieldValueError(f"Unsupported field type: {spec.field_type}")
    return validator(value, spec)


def definition_problems(
    field_type: FieldType,
    *,
    select_options: list[str] | None,
    validation_rules: Mapping[str, Any] | None,
    default_value: Any = None,
) -> list[FieldError]:
    """Return the inconsistencies in a field definition, if any."""

    problems: list[FieldError] = []
    if field_type in SELECT_FIELD_TYPES:
        if not select_options:
            problems.append(
                FieldError("select_options", "Options are required for select fields")
            )
    elif select_options:
        problems.append(
            FieldError("select_options", "Options are only allowed for select fields")
        )

    try:
        rules = parse_validation_rules(field_type, validation_rules)
    except ValidationError as exc:
        problems.append(FieldError("validation_rules", _describe_validation_error(exc)))
        return problems

    if default_value is not None and not problems:
        spec = FieldSpec(
            name="default_value",
            label="Default value",
            field_type=field_type,
            rules=rules,
            options=tuple(select_options or ()),
        )
        try:
            coerce_value(spec, default_value)
        except FieldValueError as exc:
            problems.append(FieldError("default_value", str(exc)))
    return problems


def _describe_validation_error(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(messages)


def _validate_text(value: Any, spec: FieldSpec) -> str:
    if isinstance(value, (dict, list, tuple, set)):
        raise FieldValueError("Must be a text value")
    text = str(value)
    rules = spec.rules
    assert isinstance(rules, TextRules)

    if rules.min_length is not None and len(text) < rules.min_length:
        raise FieldValueError(f"Must be at least {rules.min_length} characters long")
    if rules.max_length is not None and len(text) > rules.max_length:
        raise FieldValueError(f"Must not exceed {rules.max_length} characters")
    if rules.pattern is not None and re.search(rules.pattern, text) is None:
        raise FieldValueError("Invalid format")
    return text


def _parse_decimal(value: Any, message: str) -> Decimal:
    if isinstance(value, bool):
        raise FieldValueError(message)
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, int):
        parsed = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise FieldValueError(message)
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation as exc:
            raise FieldValueError(message) from exc
    else:
        raise FieldValueError(message)

    if not parsed.is_finite():
        raise FieldValueError(message)
    return parsed


def _check_number_bounds(number: int | float, rules: NumberRules) -> None:
    if rules.min is not None and number < rules.min:
        raise FieldValueError(f"Must be at least {rules.min}")
    if rules.max is not None and number > rules.max:
        raise FieldValueError(f"Must not exceed {rules.max}")


def _validate_integer(value: Any, spec: FieldSpec) -> int:
    parsed = _parse_decimal(value, "Must be a valid integer")
    if parsed and parsed.adjusted() >= INTEGER_MAX_DIGITS:
        raise FieldValueError("Must be a valid integer")
    if parsed != parsed.to_integral_value():
        raise FieldValueError("Must be a valid integer")
    number = int(parsed)
    lower, upper = INTEGER_RANGE
    if number < lower or number > upper:
        raise FieldValueError("Must be a valid integer")
    assert isinstance(spec.rules, NumberRules)
    _check_number_bounds(number, spec.rules)
    return number


def _validate_decimal(value: Any, spec: FieldSpec) -> float:
    parsed = _parse_decimal(value, "Must be a valid number")
    number = float(parsed)
    if not math.isfinite(number):
        raise FieldValueError("Must be a valid number")
    rules = spec.rules
    assert isinstance(rules, NumberRules)

    _check_number_bounds(number, rules)
    if rules.decimal_places is not None:
        exponent = parsed.normalize().as_tuple().exponent
        places = -exponent if isinstance(exponent, int) and exponent < 0 else 0
        if places > rules.decimal_places:
            raise FieldValueError(
                f"Must not have more than {rules.decimal_places} decimal places"
            )
    return number


def _validate_percentage(value: Any, spec: FieldSpec) -> float:
    number = _validate_decimal(value, spec)
    lower, upper = PERCENTAGE_RANGE
    if number < lower or number > upper:
        raise FieldValueError(f"Percentage must be between {lower} and {upper}")
    return number


def _validate_boolean(value: Any, spec: FieldSpec) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise FieldValueError("Must be a valid boolean value")


def _coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text).date()
        except ValueError as exc:
            raise FieldValueError("Must be a valid date") from exc
    raise FieldValueError("Must be a valid date")


def _coerce_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise FieldValueError("Must be a valid date and time") from exc
    else:
        raise FieldValueError("Must be a valid date and time")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def _validate_date(value: Any, spec: FieldSpec) -> date:
    parsed = _coerce_date(value)
    rules = spec.rules
    assert isinstance(rules, DateRules)

    if rules.min_date is not None and parsed < _coerce_date(rules.min_date):
        raise FieldValueError(f"Date must not be before {rules.min_date}")
    if rules.max_date is not None and parsed > _coerce_date(rules.max_date):
        raise FieldValueError(f"Date must not be after {rules.max_date}")
    return parsed


def _validate_datetime(value: Any, spec: FieldSpec) -> datetime:
    parsed = _coerce_datetime(value)
    rules = spec.rules
    assert isinstance(rules, DateRules)

    if rules.min_date is not None and parsed < _coerce_datetime(rules.min_date):
        raise FieldValueError(f"Date must not be before {rules.min_date}")
    if rules.max_date is not None and parsed > _coerce_datetime(rules.max_date):
        raise FieldValueError(f"Date must not be after {rules.max_date}")
    return parsed


def _validate_time(value: Any, spec: FieldSpec) -> time:
    if isinstance(value, datetime):
        return _coerce_datetime(value).time()
    if isinstance(value, time):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = time.fromisoformat(value.strip())
        except ValueError as exc:
            raise FieldValueError("Must be a valid time of day") from exc
    else:
        raise FieldValueError("Must be a valid time of day")

    if parsed.tzinfo is not None:
        # A bare time has a fixed offset; the anchor date is arbitrary.
        anchored = datetime.combine(date(2000, 1, 1), parsed)
        parsed = anchored.astimezone(UTC).replace(tzinfo=None).time()
    return parsed


def _validate_email(value: Any, spec: FieldSpec) -> str:
    text = str(value)
    if not EMAIL_PATTERN.fullmatch(text):
        raise FieldValueError("Must be a valid email address")
    return text


def _validate_url(value: Any, spec: FieldSpec) -> str:
    text = str(value)
    try:
        _URL_ADAPTER.validate_python(text)
    except ValidationError as exc:
        raise FieldValueError("Must be a valid URL") from exc
    return text


def _validate_phone(value: Any, spec: FieldSpec) -> str:
    if isinstance(value, bool):
        raise FieldValueError("Must be a valid phone number")
    cleaned = PHONE_SEPARATORS.sub("", str(value))
    if not PHONE_PATTERN.fullmatch(cleaned):
        raise FieldValueError("Must be a valid phone number")
    return cleaned


def _validate_select_single(value: Any, spec: FieldSpec) -> str:
    text = str(value)
    if text not in spec.options:
        raise FieldValueError(f"Must be one of: {', '.join(spec.options)}")
    return text


def _validate_select_multi(value: Any, spec: FieldSpec) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise FieldValueError("Must be a list of values")
    selected: list[str] = []
    for item in value:
        text = str(item)
        if text not in spec.options:
            raise FieldValueError(
                f"Invalid option '{text}'. Must be one of: {', '.join(spec.options)}"
            )
        if text not in selected:
            selected.append(text)
    return selected


def _validate_json(value: Any, spec: FieldSpec) -> Any:
    return value


_VALIDATORS: dict[FieldType, Callable[[Any, FieldSpec], Any]] = {
    FieldType.TEXT_SINGLE_LINE: _validate_text,
    FieldType.TEXT_MULTI_LINE: _validate_text,
    FieldType.TEXT_RICH: _validate_text,
    FieldType.NUMBER_INTEGER: _validate_integer,
    FieldType.NUMBER_DECIMAL: _validate_decimal,
    FieldType.CURRENCY: _validate_decimal,
    FieldType.PERCENTAGE: _validate_percentage,
    FieldType.BOOLEAN: _validate_boolean,
    FieldType.DATE: _validate_date,
    FieldType.DATETIME: _validate_datetime,
    FieldType.TIME: _validate_time,
    FieldType.EMAIL: _validate_email,
    FieldType.URL: _validate_url,
    FieldType.PHONE: _validate_phone,
    FieldType.SELECT_SINGLE_DROPDOWN: _validate_select_single,
    FieldType.SELECT_MULTI_CHECKBOX: _validate_select_multi,
    FieldType.JSON_DATA: _validate_json,
}
