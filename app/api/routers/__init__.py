"""
app/api/routers package marker.
"""

from app.api.routers.csv_imports import router as csv_imports_router
from app.api.routers.csv_templates import router as csv_templates_router

__all__ = [
    "csv_imports_router",
    "csv_templates_router",
]
