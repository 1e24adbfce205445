"""
app/validators package marker.
"""

from app.validators.header_validator import CSVHeaderValidationError, find_missing_headers, validate_headers
from app.validators.rule_validator import FieldRuleValidator, evaluate_record_rules

__all__ = [
    "CSVHeaderValidationError",
    "FieldRuleValidator",
    "evaluate_record_rules",
    "find_missing_headers",
    "validate_headers",
]
