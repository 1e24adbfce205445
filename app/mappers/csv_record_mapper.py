"""
app/mappers/csv_record_mapper.py

CSV text normalization and template-driven row mapping.

``parse_csv_content`` turns raw upload bytes into headers plus data rows and a
content hash. ``CSVRecordMapper`` then interprets each row through a template
column schema: it looks the value up by header, coerces it to the declared
type and assigns it to the column's mapping target.
"""

from __future__ import annotations

import csv
import hashlib
import io
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping, Sequence

from app.domain.csv_import import (
    RECORD_FIELDS,
    FailureCategory,
    IssueStage,
    MappedRecord,
    RowIssue,
    normalize_target_field,
)
from app.domain.import_template import ColumnDefinition, ColumnType, TemplateSchema
from app.validators.header_validator import CSVHeaderValidationError
from app.validators.rule_validator import RULE_FIELD_LABELS, FieldRuleValidator

logger = logging.getLogger(__name__)

DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
)

TRUE_STRINGS = frozenset({"true", "1"})


@dataclass(frozen=True)
class ParsedRow:
    row_number: int
    values: dict[str, str]


@dataclass(frozen=True)
class ParsedCSV:
    """
    Normalized CSV content ready for mapping.
    """

    text: str
    file_hash: str
    headers: tuple[str, ...]
    rows: tuple[ParsedRow, ...]

    @property
    def data_row_count(self) -> int:
        return len(self.rows)


def normalize_csv_text(content: bytes | str) -> str:
    """
    Decode as UTF-8 (dropping a BOM), unify line endings and drop blank lines.
    """

    if isinstance(content, bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise CSVHeaderValidationError(errors=["File is not valid UTF-8 text"]) from exc
    else:
        text = content.lstrip("\ufeff")

    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return "\n".join(line for line in lines if line.strip())


def compute_file_hash(normalized_text: str) -> str:
    return hashlib.sha256(normalized_text.encode("utf-8")).hexdigest()


def parse_csv_content(content: bytes | str) -> ParsedCSV:
    """
    Parse an uploaded CSV file into trimmed headers and data rows.

    Row numbers count the header as line 1. Cells beyond the header width are
    ignored; missing trailing cells read as empty strings.
    """

    text = normalize_csv_text(content)
    if not text:
        raise CSVHeaderValidationError(errors=["CSV file is empty"])

    reader = csv.reader(io.StringIO(text))
    headers = tuple(cell.strip() for cell in next(reader))

    rows: list[ParsedRow] = []
    for row_number, cells in enumerate(reader, start=2):
        values = {
            header: (cells[index].strip() if index < len(cells) else "")
            for index, header in enumerate(headers)
            if header
        }
        rows.append(ParsedRow(row_number=row_number, values=values))

    return ParsedCSV(
        text=text,
        file_hash=compute_file_hash(text),
        headers=headers,
        rows=tuple(rows),
    )


def parse_date_value(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date '{value}'")


def parse_number_value(value: str) -> float:
    number = float(value.replace(",", "").strip())
    if not math.isfinite(number):
        raise ValueError(f"Non-finite number '{value}'")
    return number


def coerce_value(raw: str, column_type: str) -> Any:
    """
    Coerce one non-empty cell to the column's declared type.
    """

    if column_type == ColumnType.NUMBER:
        return parse_number_value(raw)
    if column_type == ColumnType.DATE:
        return parse_date_value(raw)
    if column_type == ColumnType.BOOLEAN:
        return raw.strip().lower() in TRUE_STRINGS
    return raw.strip()


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class CSVRecordMapper:
    """
    Maps parsed CSV rows into ``MappedRecord`` objects for one template schema.
    """

    def __init__(self, *, rule_validator: FieldRuleValidator | None = None) -> None:
        self._rule_validator = rule_validator or FieldRuleValidator()

    def map_rows(self, rows: Sequence[ParsedRow], schema: TemplateSchema) -> list[MappedRecord]:
        return [self._map_row_isolated(row, schema) for row in rows]

    def _map_row_isolated(self, row: ParsedRow, schema: TemplateSchema) -> MappedRecord:
        try:
            return self.map_row(row, schema)
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning("Row %s could not be mapped: %s", row.row_number, exc)
            return MappedRecord(
                row_number=row.row_number,
                raw_row=dict(row.values),
                issues=[
                    RowIssue(
                        row_number=row.row_number,
                        message=f"Row could not be parsed: {exc}",
                        category=FailureCategory.DATA_TYPE,
                    )
                ],
            )

    def map_row(self, row: ParsedRow, schema: TemplateSchema) -> MappedRecord:
        record = MappedRecord(row_number=row.row_number, raw_row=dict(row.values))
        lowered = {header.lower(): header for header in row.values}

        for column in schema.columns:
            raw = self._extract(row.values, lowered, column.name)
            if raw is None or raw == "":
                if column.required:
                    record.issues.append(
                        RowIssue(
                            row_number=row.row_number,
                            message=f'Required field "{column.name}" is missing',
                            category=FailureCategory.MISSING_REQUIRED,
                            field=column.name,
                        )
                    )
                continue

            try:
                value = coerce_value(raw, column.type)
            except ValueError:
                record.issues.append(
                    RowIssue(
                        row_number=row.row_number,
                        message=f'Invalid {column.type} value "{raw}" for column "{column.name}"',
                        category=FailureCategory.DATA_TYPE,
                        field=column.name,
                        value=raw,
                    )
                )
                continue

            if column.validation is not None:
                message = self._rule_validator.check(column.validation, value, label=column.name)
                if message is not None:
                    record.issues.append(
                        RowIssue(
                            row_number=row.row_number,
                            message=message,
                            stage=IssueStage.RULE,
                            category=FailureCategory.BUSINESS_RULE,
                            field=column.name,
                            value=raw,
                        )
                    )

            self._assign(record, column, value, raw)

        if schema.flexible_columns:
            known = schema.column_names()
            record.additional_columns = {
                header: cell
                for header, cell in row.values.items()
                if header.lower() not in known
            }

        return record

    @staticmethod
    def _extract(
        values: Mapping[str, str],
        lowered: Mapping[str, str],
        column_name: str,
    ) -> str | None:
        if column_name in values:
            return values[column_name]
        header = lowered.get(column_name.strip().lower())
        if header is None:
            return None
        return values[header]

    def _assign(self, record: MappedRecord, column: ColumnDefinition, value: Any, raw: str) -> None:
        target = normalize_target_field(column.target)
        if target not in RECORD_FIELDS:
            record.extra_fields[target] = _to_json_value(value)
            return

        if target == "year":
            year = self._to_year(value)
            if year is None:
                record.issues.append(
                    RowIssue(
                        row_number=record.row_number,
                        message=f'Year must be a whole number, got "{raw}"',
                        category=FailureCategory.DATA_TYPE,
                        field=column.name,
                        value=raw,
                    )
                )
                return
            record.year = year
            return

        if target == "value":
            number = self._to_number(value)
            if number is None:
                record.issues.append(
                    RowIssue(
                        row_number=record.row_number,
                        message=f'{RULE_FIELD_LABELS["value"]} must be numeric, got "{raw}"',
                        category=FailureCategory.DATA_TYPE,
                        field=column.name,
                        value=raw,
                    )
                )
                return
            record.value = number
            return

        setattr(record, target, str(_to_json_value(value)).strip())

    @staticmethod
    def _to_year(value: Any) -> int | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, (datetime, date)):
            return value.year
        try:
            number = float(str(value).replace(",", "").strip())
        except ValueError:
            return None
        if not number.is_integer():
            return None
        return int(number)

    @staticmethod
    def _to_number(value: Any) -> float | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return float(value)
        try:
            return parse_number_value(str(value))
        except ValueError:
            return None
