"""
app/validators/rule_validator.py

Evaluation of template field rules (range, regex, enum, named custom checks)
against mapped CSV records.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Sequence

from app.domain.csv_import import (
    RECORD_FIELDS,
    FailureCategory,
    IssueStage,
    MappedRecord,
    RowIssue,
    normalize_target_field,
)
from app.domain.import_template import (
    CustomCheck,
    CustomRule,
    EnumRule,
    FieldRule,
    RangeRule,
    RegexRule,
    ValidationRules,
)

RULE_FIELD_LABELS: dict[str, str] = {
    "state_name": "State",
    "year": "Year",
    "value": "Value",
    "category_name": "Category",
    "statistic_name": "Statistic",
}


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        return None


class FieldRuleValidator:
    """
    Checks one value against one typed rule.
    """

    def __init__(self, *, current_year: int | None = None) -> None:
        self._current_year = current_year

    @property
    def current_year(self) -> int:
        if self._current_year is not None:
            return self._current_year
        return datetime.now(timezone.utc).year

    def check(self, rule: FieldRule, value: Any, *, label: str) -> str | None:
        """
        Return the failure message, or None when the value satisfies the rule.

        Missing values only fail the ``non_empty`` check; required-ness is
        enforced by the mapper.
        """

        if isinstance(rule, CustomRule):
            return self._check_custom(rule, value, label=label)
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if isinstance(rule, RangeRule):
            return self._check_range(rule, value, label=label)
        if isinstance(rule, RegexRule):
            if re.search(rule.pattern, str(value)) is None:
                return rule.message or f"{label} has an invalid format"
            return None
        if isinstance(rule, EnumRule):
            allowed = {item.strip().lower() for item in rule.allowed}
            if str(value).strip().lower() not in allowed:
                return rule.message or f"{label} must be one of: {', '.join(rule.allowed)}"
            return None
        raise TypeError(f"Unsupported rule object: {rule!r}")

    def _check_range(self, rule: RangeRule, value: Any, *, label: str) -> str | None:
        number = _as_number(value)
        if number is None:
            return rule.message or f"{label} must be numeric"
        if rule.min is not None and number < rule.min:
            return rule.message or f"{label} must be at least {_format_bound(rule.min)}"
        if rule.max is not None and number > rule.max:
            return rule.message or f"{label} must be at most {_format_bound(rule.max)}"
        return None

    def _check_custom(self, rule: CustomRule, value: Any, *, label: str) -> str | None:
        blank = value is None or (isinstance(value, str) and not value.strip())
        if rule.name == CustomCheck.NON_EMPTY:
            return (rule.message or f"{label} must not be empty") if blank else None
        if blank:
            return None

        number = _as_number(value)
        if rule.name == CustomCheck.INTEGER:
            if number is None or not number.is_integer():
                return rule.message or f"{label} must be a whole number"
            return None
        if rule.name == CustomCheck.NON_NEGATIVE:
            if number is None or number < 0:
                return rule.message or f"{label} must not be negative"
            return None
        if rule.name == CustomCheck.NOT_FUTURE_YEAR:
            if number is None or number > self.current_year:
                return rule.message or f"{label} cannot be in the future"
            return None
        raise TypeError(f"Unsupported custom check: {rule.name}")

    def evaluate(
        self,
        *,
        rules: Sequence[FieldRule],
        value: Any,
        field: str,
        row_number: int,
    ) -> list[RowIssue]:
        label = RULE_FIELD_LABELS.get(field, field)
        issues: list[RowIssue] = []
        for rule in rules:
            message = self.check(rule, value, label=label)
            if message is None:
                continue
            issues.append(
                RowIssue(
                    row_number=row_number,
                    message=message,
                    stage=IssueStage.RULE,
                    category=FailureCategory.BUSINESS_RULE,
                    field=field,
                    value=None if value is None else str(value),
                )
            )
        return issues


def _record_field(record: MappedRecord, field: str) -> Any:
    if field in RECORD_FIELDS:
        return getattr(record, field)
    return record.extra_fields.get(field)


def evaluate_record_rules(
    record: MappedRecord,
    rules: ValidationRules,
    *,
    validator: FieldRuleValidator | None = None,
) -> list[RowIssue]:
    """
    Apply a template's rule set to one mapped record.

    Custom rules name the record field they target; the others apply to the
    state name, year and value respectively.
    """

    checker = validator or FieldRuleValidator()
    issues: list[RowIssue] = []
    for field, field_rules in (
        ("state_name", rules.state_name),
        ("year", rules.year),
        ("value", rules.value),
    ):
        issues.extend(
            checker.evaluate(
                rules=field_rules,
                value=_record_field(record, field),
                field=field,
                row_number=record.row_number,
            )
        )

    for rule in rules.custom:
        target = normalize_target_field(rule.field) if isinstance(rule, CustomRule) else "value"
        issues.extend(
            checker.evaluate(
                rules=(rule,),
                value=_record_field(record, target),
                field=target,
                row_number=record.row_number,
            )
        )
    return issues
