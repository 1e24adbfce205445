"""
app/repositories/template_repository.py

Persistence helpers for CSV import templates.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.csv_import_template import CsvImportTemplate


class TemplateRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def list_active(self) -> list[CsvImportTemplate]:
        stmt = (
            select(CsvImportTemplate)
            .where(CsvImportTemplate.is_active.is_(True))
            .order_by(CsvImportTemplate.name)
        )
        return list(self._session.scalars(stmt).all())

    def get_active(self, template_id: int) -> CsvImportTemplate | None:
        stmt = select(CsvImportTemplate).where(
            CsvImportTemplate.id == template_id,
            CsvImportTemplate.is_active.is_(True),
        )
        return self._session.execute(stmt).scalars().first()

    def get(self, template_id: int) -> CsvImportTemplate | None:
        return self._session.get(CsvImportTemplate, template_id)
