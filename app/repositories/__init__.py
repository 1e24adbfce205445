"""
app/repositories package marker.
"""

from app.repositories.csv_import_repository import CsvImportRepository, ImportHistoryPage
from app.repositories.data_point_repository import DataPointRepository
from app.repositories.reference_repository import ReferenceRepository
from app.repositories.template_repository import TemplateRepository

__all__ = [
    "CsvImportRepository",
    "DataPointRepository",
    "ImportHistoryPage",
    "ReferenceRepository",
    "TemplateRepository",
]
