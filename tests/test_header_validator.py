from __future__ import annotations

import unittest

from app.validators.header_validator import (
    INVALID_CSV_FORMAT,
    CSVHeaderValidationError,
    find_missing_headers,
    validate_headers,
)


class TestHeaderValidator(unittest.TestCase):
    def test_matches_case_insensitively_inside_longer_headers(self) -> None:
        missing = find_missing_headers(
            headers=("State Name", "YEAR", "Measure"),
            expected_headers=("state", "Year", "Value"),
        )

        self.assertEqual(missing, ["Value"])

    def test_accepts_complete_header_row(self) -> None:
        validate_headers(
            ("State", "Year", "Category", "Measure", "Value"),
            ("State", "Year", "Category", "Measure", "Value"),
        )

    def test_lists_every_missing_column(self) -> None:
        with self.assertRaises(CSVHeaderValidationError) as ctx:
            validate_headers(("State", "Year"), ("State", "Year", "Measure", "Value"))

        self.assertEqual(ctx.exception.message, INVALID_CSV_FORMAT)
        self.assertEqual(
            list(ctx.exception.errors),
            ["Missing required column: Measure", "Missing required column: Value"],
        )
        self.assertEqual(ctx.exception.to_dict()["headers"], ["State", "Year"])

    def test_rejects_blank_header_row(self) -> None:
        with self.assertRaises(CSVHeaderValidationError) as ctx:
            validate_headers(("", " "), ("State",))

        self.assertEqual(list(ctx.exception.errors), ["CSV file has no header row"])


if __name__ == "__main__":
    unittest.main()
