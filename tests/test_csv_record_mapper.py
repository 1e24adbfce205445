from __future__ import annotations

import unittest

from app.domain.csv_import import FailureCategory, IssueStage
from app.domain.import_template import parse_template_schema
from app.mappers.csv_record_mapper import CSVRecordMapper, ParsedRow, parse_csv_content
from app.validators.header_validator import CSVHeaderValidationError

MULTI_SCHEMA = parse_template_schema(
    {
        "columns": [
            {"name": "State", "type": "string", "required": True, "mapping": "stateName"},
            {"name": "Year", "type": "number", "required": True, "mapping": "year"},
            {"name": "Category", "type": "string", "required": True, "mapping": "categoryName"},
            {"name": "Measure", "type": "string", "required": True, "mapping": "statisticName"},
            {
                "name": "Value",
                "type": "number",
                "required": True,
                "mapping": "value",
                "validation": {"type": "range", "value": {"min": 0}},
            },
            {"name": "Source", "type": "string", "mapping": "sourceNote"},
        ],
    }
)


def _row(row_number: int = 2, **values: str) -> ParsedRow:
    base = {"State": "Alabama", "Year": "2023", "Category": "Economy", "Measure": "GDP", "Value": "200000"}
    base.update(values)
    return ParsedRow(row_number=row_number, values=base)


class TestParseCSVContent(unittest.TestCase):
    def test_strips_bom_blank_lines_and_numbers_rows_from_two(self) -> None:
        parsed = parse_csv_content(
            "\ufeffState, Year ,Value\r\n\r\nAlabama,2023,1\r\n  \r\nTexas,2022,2\r\n".encode("utf-8")
        )

        self.assertEqual(parsed.headers, ("State", "Year", "Value"))
        self.assertEqual(parsed.data_row_count, 2)
        self.assertEqual([row.row_number for row in parsed.rows], [2, 3])
        self.assertEqual(parsed.rows[1].values, {"State": "Texas", "Year": "2022", "Value": "2"})

    def test_hash_ignores_line_ending_style(self) -> None:
        unix = parse_csv_content(b"State,Year\nAlabama,2023\n")
        windows = parse_csv_content(b"State,Year\r\nAlabama,2023\r\n")

        self.assertEqual(unix.file_hash, windows.file_hash)
        self.assertEqual(len(unix.file_hash), 64)

    def test_short_rows_read_missing_cells_as_empty(self) -> None:
        parsed = parse_csv_content("State,Year,Value\nAlabama,2023\n")

        self.assertEqual(parsed.rows[0].values["Value"], "")

    def test_quoted_cells_keep_commas(self) -> None:
        parsed = parse_csv_content('State,Value\n"New York","1,234"\n')

        self.assertEqual(parsed.rows[0].values, {"State": "New York", "Value": "1,234"})

    def test_empty_file_is_rejected(self) -> None:
        with self.assertRaises(CSVHeaderValidationError) as ctx:
            parse_csv_content(b"\n\n")

        self.assertEqual(list(ctx.exception.errors), ["CSV file is empty"])

    def test_non_utf8_file_is_rejected(self) -> None:
        with self.assertRaises(CSVHeaderValidationError) as ctx:
            parse_csv_content(b"State\n\xff\xfe\xfa\n")

        self.assertEqual(list(ctx.exception.errors), ["File is not valid UTF-8 text"])


class TestCSVRecordMapper(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = CSVRecordMapper()

    def test_maps_complete_row(self) -> None:
        record = self.mapper.map_row(_row(), MULTI_SCHEMA)

        self.assertEqual(record.state_name, "Alabama")
        self.assertEqual(record.year, 2023)
        self.assertEqual(record.category_name, "Economy")
        self.assertEqual(record.statistic_name, "GDP")
        self.assertEqual(record.value, 200000.0)
        self.assertEqual(record.issues, [])
        self.assertEqual(record.raw_data(), {"row": _row().values})

    def test_reports_missing_required_field(self) -> None:
        record = self.mapper.map_row(_row(Value=""), MULTI_SCHEMA)

        self.assertIsNone(record.value)
        self.assertEqual(len(record.issues), 1)
        issue = record.issues[0]
        self.assertEqual(issue.message, 'Required field "Value" is missing')
        self.assertEqual(issue.category, FailureCategory.MISSING_REQUIRED)
        self.assertEqual(issue.field, "Value")

    def test_reports_uncoercible_number(self) -> None:
        record = self.mapper.map_row(_row(Value="abc"), MULTI_SCHEMA)

        self.assertTrue(record.has_errors)
        self.assertEqual(record.issues[0].message, 'Invalid number value "abc" for column "Value"')
        self.assertEqual(record.issues[0].category, FailureCategory.DATA_TYPE)

    def test_fractional_year_is_rejected(self) -> None:
        record = self.mapper.map_row(_row(Year="2023.5"), MULTI_SCHEMA)

        self.assertIsNone(record.year)
        self.assertEqual(record.issues[0].message, 'Year must be a whole number, got "2023.5"')

    def test_thousands_separators_are_accepted(self) -> None:
        record = self.mapper.map_row(_row(Value="1,234.5"), MULTI_SCHEMA)

        self.assertEqual(record.value, 1234.5)

    def test_column_rule_failure_is_a_rule_issue(self) -> None:
        record = self.mapper.map_row(_row(Value="-5"), MULTI_SCHEMA)

        self.assertEqual(record.value, -5.0)
        self.assertEqual(len(record.issues), 1)
        self.assertEqual(record.issues[0].message, "Value must be at least 0")
        self.assertEqual(record.issues[0].stage, IssueStage.RULE)
        self.assertEqual(record.issues[0].category, FailureCategory.BUSINESS_RULE)

    def test_headers_match_case_insensitively(self) -> None:
        row = ParsedRow(
            row_number=2,
            values={"state": "Texas", "YEAR": "2021", "category": "Economy", "measure": "GDP", "value": "5"},
        )

        record = self.mapper.map_row(row, MULTI_SCHEMA)

        self.assertEqual(record.state_name, "Texas")
        self.assertEqual(record.year, 2021)
        self.assertFalse(record.has_errors)

    def test_unknown_mapping_target_goes_to_extra_fields(self) -> None:
        record = self.mapper.map_row(_row(Source="BEA release"), MULTI_SCHEMA)

        self.assertEqual(record.extra_fields, {"sourceNote": "BEA release"})
        self.assertEqual(record.raw_data()["extra_fields"], {"sourceNote": "BEA release"})

    def test_flexible_schema_keeps_additional_columns(self) -> None:
        schema = parse_template_schema(
            {
                "columns": [
                    {"name": "State", "type": "string", "required": True, "mapping": "stateName"},
                    {"name": "Value", "type": "number", "required": True, "mapping": "value"},
                ],
                "flexibleColumns": True,
            }
        )
        row = ParsedRow(row_number=2, values={"State": "Texas", "Value": "3", "Notes": "preliminary"})

        record = self.mapper.map_row(row, schema)

        self.assertEqual(record.additional_columns, {"Notes": "preliminary"})

    def test_map_rows_preserves_order_and_count(self) -> None:
        rows = [_row(2), _row(3, Value="oops"), _row(4)]

        records = self.mapper.map_rows(rows, MULTI_SCHEMA)

        self.assertEqual([record.row_number for record in records], [2, 3, 4])
        self.assertEqual([record.has_errors for record in records], [False, True, False])


if __name__ == "__main__":
    unittest.main()
