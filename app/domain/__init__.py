"""
app/domain package marker.
"""

from app.domain.csv_import import MappedRecord, RowIssue, StagingStats, UploadResult, ValidationReport
from app.domain.import_template import ImportTemplate, TemplateDefinitionError, TemplateSchema

__all__ = [
    "ImportTemplate",
    "MappedRecord",
    "RowIssue",
    "StagingStats",
    "TemplateDefinitionError",
    "TemplateSchema",
    "UploadResult",
    "ValidationReport",
]
