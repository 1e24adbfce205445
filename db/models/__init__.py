"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.csv_import import CsvImport, CsvImportMetadata, CsvImportStaging
from db.models.csv_import_template import CsvImportTemplate
from db.models.import_session import DataPoint, ImportSession
from db.models.reference import Category, DataSource, State, Statistic
from db.models.user import User

__all__ = [
    "Category",
    "CsvImport",
    "CsvImportMetadata",
    "CsvImportStaging",
    "CsvImportTemplate",
    "DataPoint",
    "DataSource",
    "ImportSession",
    "State",
    "Statistic",
    "User",
]
