"""
app/domain/import_template.py

Typed view of CSV import templates.

Templates are stored as JSON. This module turns the stored column schema and
rule lists into frozen dataclasses so the mapper and validators never touch
raw dictionaries.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Union


class ColumnType:
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


SUPPORTED_COLUMN_TYPES = frozenset(
    {ColumnType.STRING, ColumnType.NUMBER, ColumnType.DATE, ColumnType.BOOLEAN}
)


class RuleType:
    RANGE = "range"
    REGEX = "regex"
    ENUM = "enum"
    CUSTOM = "custom"


class CustomCheck:
    NON_EMPTY = "non_empty"
    INTEGER = "integer"
    NON_NEGATIVE = "non_negative"
    NOT_FUTURE_YEAR = "not_future_year"


SUPPORTED_CUSTOM_CHECKS = frozenset(
    {
        CustomCheck.NON_EMPTY,
        CustomCheck.INTEGER,
        CustomCheck.NON_NEGATIVE,
        CustomCheck.NOT_FUTURE_YEAR,
    }
)


class TemplateDefinitionError(ValueError):
    """
    Raised when a stored template schema or rule set cannot be interpreted.
    """

    def __init__(self, *, message: str, template_id: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.template_id = template_id

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "template_id": self.template_id}


@dataclass(frozen=True)
class RangeRule:
    min: float | None = None
    max: float | None = None
    message: str | None = None


@dataclass(frozen=True)
class RegexRule:
    pattern: str
    message: str | None = None


@dataclass(frozen=True)
class EnumRule:
    allowed: tuple[str, ...]
    message: str | None = None


@dataclass(frozen=True)
class CustomRule:
    name: str
    field: str = "value"
    message: str | None = None


FieldRule = Union[RangeRule, RegexRule, EnumRule, CustomRule]


@dataclass(frozen=True)
class ColumnDefinition:
    """
    One template column: the CSV header it reads and the field it feeds.
    """

    name: str
    type: str = ColumnType.STRING
    required: bool = False
    mapping: str | None = None
    validation: FieldRule | None = None

    @property
    def target(self) -> str:
        return self.mapping or self.name


@dataclass(frozen=True)
class TemplateSchema:
    columns: tuple[ColumnDefinition, ...]
    expected_headers: tuple[str, ...]
    flexible_columns: bool = False

    def column_names(self) -> set[str]:
        return {column.name.strip().lower() for column in self.columns}


@dataclass(frozen=True)
class ValidationRules:
    state_name: tuple[FieldRule, ...] = ()
    year: tuple[FieldRule, ...] = ()
    value: tuple[FieldRule, ...] = ()
    custom: tuple[FieldRule, ...] = ()

    def is_empty(self) -> bool:
        return not (self.state_name or self.year or self.value or self.custom)


@dataclass(frozen=True)
class ImportTemplate:
    id: int
    name: str
    schema: TemplateSchema
    validation_rules: ValidationRules = field(default_factory=ValidationRules)
    description: str | None = None
    category_id: int | None = None
    data_source_id: int | None = None
    sample_data: str | None = None


def _optional_float(value: Any, *, label: str) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise TemplateDefinitionError(message=f"Range bound '{label}' must be numeric.") from exc


def parse_rule(raw: Mapping[str, Any]) -> FieldRule:
    """
    Build one typed rule from its stored ``{type, value, message}`` form.
    """

    if not isinstance(raw, Mapping):
        raise TemplateDefinitionError(message="Validation rule must be an object.")

    rule_type = str(raw.get("type") or "").strip().lower()
    value = raw.get("value")
    message = raw.get("message")

    if rule_type == RuleType.RANGE:
        bounds = value if isinstance(value, Mapping) else raw
        return RangeRule(
            min=_optional_float(bounds.get("min"), label="min"),
            max=_optional_float(bounds.get("max"), label="max"),
            message=message,
        )
    if rule_type == RuleType.REGEX:
        if not isinstance(value, str) or not value:
            raise TemplateDefinitionError(message="Regex rule requires a pattern string.")
        try:
            re.compile(value)
        except re.error as exc:
            raise TemplateDefinitionError(message=f"Invalid regex pattern '{value}'.") from exc
        return RegexRule(pattern=value, message=message)
    if rule_type == RuleType.ENUM:
        if not isinstance(value, (list, tuple)) or not value:
            raise TemplateDefinitionError(message="Enum rule requires a non-empty list of values.")
        return EnumRule(allowed=tuple(str(item) for item in value), message=message)
    if rule_type == RuleType.CUSTOM:
        name = str(value or raw.get("name") or "").strip().lower()
        if name not in SUPPORTED_CUSTOM_CHECKS:
            raise TemplateDefinitionError(message=f"Unknown custom validation check '{name}'.")
        return CustomRule(name=name, field=str(raw.get("field") or "value"), message=message)

    raise TemplateDefinitionError(message=f"Unsupported validation rule type '{rule_type}'.")


def parse_column(raw: Mapping[str, Any]) -> ColumnDefinition:
    if not isinstance(raw, Mapping):
        raise TemplateDefinitionError(message="Template column must be an object.")

    name = str(raw.get("name") or "").strip()
    if not name:
        raise TemplateDefinitionError(message="Template column is missing its name.")

    column_type = str(raw.get("type") or ColumnType.STRING).strip().lower()
    if column_type not in SUPPORTED_COLUMN_TYPES:
        raise TemplateDefinitionError(
            message=f"Column '{name}' has unsupported type '{column_type}'."
        )

    validation = raw.get("validation")
    mapping = raw.get("mapping")
    return ColumnDefinition(
        name=name,
        type=column_type,
        required=bool(raw.get("required", False)),
        mapping=str(mapping).strip() if mapping else None,
        validation=parse_rule(validation) if validation else None,
    )


def parse_template_schema(raw: Mapping[str, Any] | None) -> TemplateSchema:
    """
    Parse the stored ``template_schema`` JSON.

    ``expectedHeaders`` defaults to the names of the required columns.
    """

    if not isinstance(raw, Mapping):
        raise TemplateDefinitionError(message="Template schema must be an object.")

    raw_columns = raw.get("columns")
    if not isinstance(raw_columns, list) or not raw_columns:
        raise TemplateDefinitionError(message="Template schema must define at least one column.")
    columns = tuple(parse_column(item) for item in raw_columns)

    raw_expected = raw.get("expectedHeaders")
    if raw_expected is None:
        expected = tuple(column.name for column in columns if column.required)
    elif isinstance(raw_expected, list):
        expected = tuple(str(header).strip() for header in raw_expected if str(header).strip())
    else:
        raise TemplateDefinitionError(message="expectedHeaders must be a list of header names.")

    return TemplateSchema(
        columns=columns,
        expected_headers=expected,
        flexible_columns=bool(raw.get("flexibleColumns", False)),
    )


def _parse_rule_list(raw: Any, *, key: str) -> tuple[FieldRule, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise TemplateDefinitionError(message=f"Validation rules for '{key}' must be a list.")
    return tuple(parse_rule(item) for item in raw)


def parse_validation_rules(raw: Mapping[str, Any] | None) -> ValidationRules:
    if raw is None:
        return ValidationRules()
    if not isinstance(raw, Mapping):
        raise TemplateDefinitionError(message="Validation rules must be an object.")

    return ValidationRules(
        state_name=_parse_rule_list(raw.get("stateName"), key="stateName"),
        year=_parse_rule_list(raw.get("year"), key="year"),
        value=_parse_rule_list(raw.get("value"), key="value"),
        custom=_parse_rule_list(raw.get("custom"), key="custom"),
    )


def rule_to_dict(rule: FieldRule) -> dict[str, Any]:
    """
    Render a typed rule back to its stored JSON form.
    """

    if isinstance(rule, RangeRule):
        return {"type": RuleType.RANGE, "value": {"min": rule.min, "max": rule.max}, "message": rule.message}
    if isinstance(rule, RegexRule):
        return {"type": RuleType.REGEX, "value": rule.pattern, "message": rule.message}
    if isinstance(rule, EnumRule):
        return {"type": RuleType.ENUM, "value": list(rule.allowed), "message": rule.message}
    return {"type": RuleType.CUSTOM, "value": rule.name, "field": rule.field, "message": rule.message}
