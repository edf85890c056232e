from __future__ import annotations

import uuid
from datetime import date, datetime, time
from typing import Any

import pytest

from mssp.core.errors import CustomFieldValidationError
from mssp.models import EntityType, FieldDefinition, FieldType
from mssp.services.field_validation import (
    definition_problems,
    normalize_validation_rules,
    validate_custom_field_data,
    validate_field_value,
)


def make_definition(
    name: str,
    field_type: FieldType,
    *,
    required: bool = False,
    active: bool = True,
    options: list[str] | None = None,
    rules: dict[str, Any] | None = None,
    default: Any = None,
) -> FieldDefinition:
    return FieldDefinition(
        id=uuid.uuid4(),
        entity_type=EntityType.SERVICE_SCOPE,
        name=name,
        label=name.replace("_", " ").title(),
        field_type=field_type,
        select_options=options,
        validation_rules=rules,
        default_value=default,
        is_required=required,
        is_active=active,
    )


def as_map(*definitions: FieldDefinition) -> dict[str, FieldDefinition]:
    return {definition.name: definition for definition in definitions}


def messages_for(exc: CustomFieldValidationError, field: str) -> list[str]:
    return [error.message for error in exc.errors if error.field == field]


@pytest.fixture()
def service_scope_definitions() -> dict[str, FieldDefinition]:
    return as_map(
        make_definition(
            "endpoint_count",
            FieldType.NUMBER_INTEGER,
            required=True,
            rules={"min": 1, "max": 10000},
        ),
        make_definition("24x7_monitoring", FieldType.BOOLEAN, required=True, default=True),
    )


def test_service_scope_values_are_coerced(service_scope_definitions) -> None:
    validated = validate_custom_field_data(
        {"endpoint_count": "500", "24x7_monitoring": "true"}, service_scope_definitions
    )

    assert validated == {"endpoint_count": 500, "24x7_monitoring": True}
    assert isinstance(validated["endpoint_count"], int)


def test_service_scope_max_bound_violation(service_scope_definitions) -> None:
    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_custom_field_data({"endpoint_count": 50000}, service_scope_definitions)

    assert messages_for(exc_info.value, "endpoint_count") == ["Must not exceed 10000"]


def test_empty_payload_reports_every_missing_required_field(service_scope_definitions) -> None:
    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_custom_field_data({}, service_scope_definitions)

    assert exc_info.value.fields == {"endpoint_count", "24x7_monitoring"}
    assert "Required field 'Endpoint Count' is missing" in messages_for(
        exc_info.value, "endpoint_count"
    )


@pytest.mark.parametrize(
    "field_type",
    [
        FieldType.TEXT_SINGLE_LINE,
        FieldType.NUMBER_DECIMAL,
        FieldType.DATE,
        FieldType.EMAIL,
        FieldType.PERCENTAGE,
    ],
)
def test_required_field_missing_is_named(field_type: FieldType) -> None:
    definitions = as_map(
        make_definition("mandatory", field_type, required=True),
        make_definition("optional_note", FieldType.TEXT_MULTI_LINE),
    )

    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_custom_field_data({"optional_note": "hello"}, definitions)

    assert exc_info.value.fields == {"mandatory"}


def test_required_field_with_null_value_fails() -> None:
    definitions = as_map(make_definition("risk_tier", FieldType.TEXT_SINGLE_LINE, required=True))

    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_custom_field_data({"risk_tier": None}, definitions)

    assert exc_info.value.fields == {"risk_tier"}


def test_existing_values_satisfy_required_fields_unless_cleared() -> None:
    definitions = as_map(
        make_definition("risk_tier", FieldType.TEXT_SINGLE_LINE, required=True),
        make_definition("notes", FieldType.TEXT_MULTI_LINE),
    )

    validated = validate_custom_field_data(
        {"notes": "renewal pending"}, definitions, existing={"risk_tier": "gold"}
    )
    assert validated == {"notes": "renewal pending"}

    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_custom_field_data(
            {"risk_tier": None}, definitions, existing={"risk_tier": "gold"}
        )
    assert exc_info.value.fields == {"risk_tier"}


def test_optional_null_value_is_kept() -> None:
    definitions = as_map(make_definition("notes", FieldType.TEXT_MULTI_LINE))

    assert validate_custom_field_data({"notes": None}, definitions) == {"notes": None}


def test_unknown_and_inactive_fields_are_reported_together() -> None:
    definitions = as_map(
        make_definition("retired", FieldType.TEXT_SINGLE_LINE, active=False),
        make_definition("count", FieldType.NUMBER_INTEGER),
    )

    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_custom_field_data(
            {"ghost": 1, "retired": "x", "count": "many"}, definitions
        )

    error = exc_info.value
    assert error.fields == {"ghost", "retired", "count"}
    assert messages_for(error, "ghost") == ["Unknown custom field 'ghost'"]
    assert messages_for(error, "retired") == ["Custom field 'retired' is no longer active"]
    assert messages_for(error, "count") == ["Must be a valid integer"]


def test_inactive_required_field_is_not_enforced() -> None:
    definitions = as_map(
        make_definition("legacy_code", FieldType.TEXT_SINGLE_LINE, required=True, active=False)
    )

    assert validate_custom_field_data({}, definitions) == {}


def test_select_single_accepts_only_listed_options() -> None:
    definition = make_definition(
        "sla_tier", FieldType.SELECT_SINGLE_DROPDOWN, options=["bronze", "silver", "gold"]
    )

    assert validate_field_value(definition, "gold") == "gold"
    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_field_value(definition, "platinum")
    assert messages_for(exc_info.value, "sla_tier") == ["Must be one of: bronze, silver, gold"]


def test_select_single_returns_value_as_string() -> None:
    definition = make_definition("rack", FieldType.SELECT_SINGLE_DROPDOWN, options=["1", "2"])

    assert validate_field_value(definition, 2) == "2"


def test_select_multi_validates_each_element() -> None:
    definition = make_definition(
        "regions", FieldType.SELECT_MULTI_CHECKBOX, options=["emea", "apac", "amer"]
    )

    assert validate_field_value(definition, ["emea", "apac", "emea"]) == ["emea", "apac"]

    with pytest.raises(CustomFieldValidationError):
        validate_field_value(definition, "emea")
    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_field_value(definition, ["emea", "mars"])
    assert messages_for(exc_info.value, "regions")[0].startswith("Invalid option 'mars'")


@pytest.mark.parametrize("value", [105, -0.5, "100.01"])
def test_percentage_outside_range_fails(value: Any) -> None:
    definition = make_definition("coverage", FieldType.PERCENTAGE)

    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_field_value(definition, value)
    assert messages_for(exc_info.value, "coverage") == [
        "Percentage must be between 0 and 100"
    ]


@pytest.mark.parametrize("value, expected", [(0, 0.0), (100, 100.0), ("87.5", 87.5)])
def test_percentage_bounds_are_inclusive(value: Any, expected: float) -> None:
    definition = make_definition("coverage", FieldType.PERCENTAGE)

    result = validate_field_value(definition, value)
    assert result == expected
    assert isinstance(result, float)


@pytest.mark.parametrize(
    "value, expected",
    [(True, True), ("YES", True), ("1", True), ("false", False), (" No ", False), ("0", False)],
)
def test_boolean_accepts_common_spellings(value: Any, expected: bool) -> None:
    definition = make_definition("managed", FieldType.BOOLEAN)

    assert validate_field_value(definition, value) is expected


@pytest.mark.parametrize("value", ["maybe", 1, 0, [True]])
def test_boolean_rejects_other_values(value: Any) -> None:
    definition = make_definition("managed", FieldType.BOOLEAN)

    with pytest.raises(CustomFieldValidationError):
        validate_field_value(definition, value)


def test_integer_parsing() -> None:
    definition = make_definition("seats", FieldType.NUMBER_INTEGER)

    assert validate_field_value(definition, " 42 ") == 42
    assert validate_field_value(definition, 12.0) == 12
    for invalid in ("12.5", "abc", True, [1]):
        with pytest.raises(CustomFieldValidationError):
            validate_field_value(definition, invalid)


def test_decimal_bounds_and_places() -> None:
    definition = make_definition(
        "monthly_fee",
        FieldType.CURRENCY,
        rules={"min": 0, "max": 50000, "decimalPlaces": 2},
    )

    assert validate_field_value(definition, "1200.50") == 1200.5
    assert validate_field_value(definition, 99) == 99.0

    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_field_value(definition, "10.123")
    assert messages_for(exc_info.value, "monthly_fee") == [
        "Must not have more than 2 decimal places"
    ]
    with pytest.raises(CustomFieldValidationError):
        validate_field_value(definition, -1)
    for invalid in ("NaN", "1e400", "-1e400", "Infinity"):
        with pytest.raises(CustomFieldValidationError) as exc_info:
            validate_field_value(definition, invalid)
        assert messages_for(exc_info.value, "monthly_fee") == ["Must be a valid number"]


@pytest.mark.parametrize(
    "field_type", [FieldType.NUMBER_DECIMAL, FieldType.CURRENCY, FieldType.PERCENTAGE]
)
def test_decimal_values_beyond_float_range_fail(field_type: FieldType) -> None:
    definition = make_definition("measure", field_type)

    for invalid in ("1e400", "-1e400"):
        with pytest.raises(CustomFieldValidationError) as exc_info:
            validate_field_value(definition, invalid)
        assert messages_for(exc_info.value, "measure") == ["Must be a valid number"]


@pytest.mark.parametrize(
    "value",
    [
        "99999999999999999999",
        str(2**63),
        str(-(2**63) - 1),
        "1e1000000000",
        1e30,
    ],
)
def test_integer_outside_storage_range_fails(value: Any) -> None:
    definition = make_definition("seats", FieldType.NUMBER_INTEGER)

    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_field_value(definition, value)
    assert messages_for(exc_info.value, "seats") == ["Must be a valid integer"]


@pytest.mark.parametrize(
    "value, expected",
    [(str(2**63 - 1), 2**63 - 1), (-(2**63), -(2**63)), ("0E+1000", 0)],
)
def test_integer_storage_range_edges_pass(value: Any, expected: int) -> None:
    definition = make_definition("seats", FieldType.NUMBER_INTEGER)

    assert validate_field_value(definition, value) == expected


def test_text_rules() -> None:
    definition = make_definition(
        "ticket_prefix",
        FieldType.TEXT_SINGLE_LINE,
        rules={"minLength": 2, "maxLength": 5, "pattern": "^[A-Z]+$"},
    )

    assert validate_field_value(definition, "SOC") == "SOC"
    for invalid, message in (
        ("A", "Must be at least 2 characters long"),
        ("ABCDEF", "Must not exceed 5 characters"),
        ("soc", "Invalid format"),
    ):
        with pytest.raises(CustomFieldValidationError) as exc_info:
            validate_field_value(definition, invalid)
        assert messages_for(exc_info.value, "ticket_prefix") == [message]


def test_multi_line_text_converts_scalars_and_rejects_containers() -> None:
    definition = make_definition("summary", FieldType.TEXT_MULTI_LINE)

    assert validate_field_value(definition, 123) == "123"
    with pytest.raises(CustomFieldValidationError):
        validate_field_value(definition, {"nested": True})


def test_date_parsing_and_bounds() -> None:
    definition = make_definition(
        "go_live",
        FieldType.DATE,
        rules={"minDate": "2024-01-01", "maxDate": "2025-12-31"},
    )

    assert validate_field_value(definition, "2024-06-01") == date(2024, 6, 1)
    assert validate_field_value(definition, datetime(2024, 6, 1, 15, 30)) == date(2024, 6, 1)

    with pytest.raises(CustomFieldValidationError) as exc_info:
        validate_field_value(definition, "2023-12-31")
    assert messages_for(exc_info.value, "go_live") == ["Date must not be before 2024-01-01"]
    with pytest.raises(CustomFieldValidationError):
        validate_field_value(definition, "2026-01-01")
    with pytest.raises(CustomFieldValidationError):
        validate_field_value(definition, "next tuesday")


def test_datetime_is_normalized_to_naive_utc() -> None:
    definition = make_definition("last_audit", FieldType.DATETIME)

    assert validate_field_value(definition, "2024-06-01T12:00:00+02:00") == datetime(
        2024, 6, 1, 10, 0
    )
    assert validate_field_value(definition, "2024-06-01T12:00:00Z") == datetime(
        2024, 6, 1, 12, 0
    )
    assert validate_field_value(definition, date(2024, 6, 1)) == datetime(2024, 6, 1)


def test_time_of_day() -> None:
    definition = make_definition("maintenance_window", FieldType.TIME)

    assert validate_field_value(definition, "02:30") == time(2, 30)
    with pytest.raises(CustomFieldValidationError):
        validate_field_value(definition, "25:00")


def test_time_with_offset_is_normalized_to_naive_utc() -> None:
    definition = make_definition("maintenance_window", FieldType.TIME)

    result = validate_field_value(definition, "10:00+02:00")
    assert result == time(8, 0)
    assert result.tzinfo is None
    assert validate_field_value(definition, "23:30-01:00") == time(0, 30)
    assert validate_field_value(
        definition, datetime.fromisoformat("2024-06-01T12:15:00+02:00")
    ) == time(10, 15)


@pytest.mark.parametrize(
    "field_type, select, numeric, date_time",
    [
        (FieldType.SELECT_SINGLE_DROPDOWN, True, False, False),
        (FieldType.SELECT_MULTI_CHECKBOX, True, False, False),
        (FieldType.NUMBER_INTEGER, False, True, False),
        (FieldType.PERCENTAGE, False, True, False),
        (FieldType.CURRENCY, False, True, False),
        (FieldType.DATE, False, False, True),
        (FieldType.TIME, False, False, True),
        (FieldType.EMAIL, False, False, False),
    ],
)
def test_definition_derived_properties(
    field_type: FieldType, select: bool, numeric: bool, date_time: bool
) -> None:
    definition = make_definition("kind_check", field_type)

    assert definition.has_select_options is select
    assert definition.is_numeric is numeric
    assert definition.is_date_time is date_time


def test_options_ignored_for_non_select_definition() -> None:
    definition = make_definition("notes", FieldType.TEXT_SINGLE_LINE, options=["stale"])

    assert validate_field_value(definition, "anything") == "anything"


def test_email_url_and_phone_formats() -> None:
    email = make_definition("escalation_email", FieldType.EMAIL)
    url = make_definition("portal_url", FieldType.URL)
    phone = make_definition("noc_phone", FieldType.PHONE)

    assert validate_field_value(email, "soc@client.example") == "soc@client.example"
    assert validate_field_value(url, "https://portal.example.com/login") == (
        "https://portal.example.com/login"
    )
    assert validate_field_value(phone, "+1 (555) 010-2030") == "+15550102030"

    for definition, invalid in (
        (email, "soc@client"),
        (email, "not an email@x.io"),
        (url, "portal.example.com"),
        (phone, "0123456"),
        (phone, "call me"),
    ):
        with pytest.raises(CustomFieldValidationError):
            validate_field_value(definition, invalid)


def test_json_data_passes_through() -> None:
    definition = make_definition("integration_settings", FieldType.JSON_DATA)
    payload = {"siem": "splunk", "indexes": ["fw", "edr"]}

    assert validate_field_value(definition, payload) == payload


def test_definition_problems_for_select_options() -> None:
    assert [
        problem.field
        for problem in definition_problems(
            FieldType.SELECT_SINGLE_DROPDOWN,
            select_options=None,
            validation_rules=None,
        )
    ] == ["select_options"]
    assert [
        problem.message
        for problem in definition_problems(
            FieldType.TEXT_SINGLE_LINE,
            select_options=["a"],
            validation_rules=None,
        )
    ] == ["Options are only allowed for select fields"]


def test_definition_problems_for_rules_and_defaults() -> None:
    unknown_rule = definition_problems(
        FieldType.BOOLEAN, select_options=None, validation_rules={"min": 1}
    )
    assert [problem.field for problem in unknown_rule] == ["validation_rules"]

    inverted = definition_problems(
        FieldType.NUMBER_INTEGER,
        select_options=None,
        validation_rules={"min": 10, "max": 1},
    )
    assert "min must not exceed max" in inverted[0].message

    bad_default = definition_problems(
        FieldType.NUMBER_INTEGER,
        select_options=None,
        validation_rules={"max": 10},
        default_value=50,
    )
    assert [(problem.field, problem.message) for problem in bad_default] == [
        ("default_value", "Must not exceed 10")
    ]

    assert (
        definition_problems(
            FieldType.BOOLEAN, select_options=None, validation_rules=None, default_value=True
        )
        == []
    )


def test_rules_are_normalized_to_camel_case() -> None:
    assert normalize_validation_rules(
        FieldType.TEXT_SINGLE_LINE, {"min_length": 1, "maxLength": 20}
    ) == {"minLength": 1, "maxLength": 20}
    assert normalize_validation_rules(FieldType.EMAIL, {}) is None
