"""
app/services package marker.
"""

from app.services.csv_import_service import (
    CSVImportPersistenceError,
    CSVImportService,
    ImportNotFoundError,
    UploaderNotFoundError,
    get_csv_import_service,
)
from app.services.import_publish_service import (
    ImportPublishError,
    ImportPublishService,
    get_import_publish_service,
)
from app.services.import_validation_service import (
    ImportStateError,
    ImportValidationError,
    ImportValidationService,
    get_import_validation_service,
)
from app.services.template_registry import TemplateNotFoundError, TemplateRegistry, get_template_registry

__all__ = [
    "CSVImportPersistenceError",
    "CSVImportService",
    "ImportNotFoundError",
    "ImportPublishError",
    "ImportPublishService",
    "ImportStateError",
    "ImportValidationError",
    "ImportValidationService",
    "TemplateNotFoundError",
    "TemplateRegistry",
    "UploaderNotFoundError",
    "get_csv_import_service",
    "get_import_publish_service",
    "get_import_validation_service",
    "get_template_registry",
]
