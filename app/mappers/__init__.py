"""
app/mappers package marker.
"""

from app.mappers.csv_record_mapper import CSVRecordMapper, ParsedCSV, ParsedRow, parse_csv_content
from app.mappers.fuzzy_matcher import FuzzyMatch, find_best_match, levenshtein_distance, similarity
from app.mappers.reference_resolver import ReferenceResolver, ReferenceSnapshot

__all__ = [
    "CSVRecordMapper",
    "FuzzyMatch",
    "ParsedCSV",
    "ParsedRow",
    "ReferenceResolver",
    "ReferenceSnapshot",
    "find_best_match",
    "levenshtein_distance",
    "parse_csv_content",
    "similarity",
]
