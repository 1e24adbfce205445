"""
app/services/template_registry.py

Read-through access to active CSV import templates as typed objects.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from sqlalchemy.orm import Session

from app.domain.import_template import (
    ImportTemplate,
    TemplateDefinitionError,
    parse_template_schema,
    parse_validation_rules,
)
from app.repositories.template_repository import TemplateRepository
from db.models.csv_import_template import CsvImportTemplate

logger = logging.getLogger(__name__)


class TemplateNotFoundError(ValueError):
    """
    Raised when a template id does not name an active template.
    """

    def __init__(self, template_id: int) -> None:
        super().__init__(f"Template {template_id} not found")
        self.template_id = template_id

    def to_dict(self) -> dict[str, Any]:
        return {"message": str(self), "template_id": self.template_id}


def template_from_model(model: CsvImportTemplate) -> ImportTemplate:
    """
    Deserialize a stored template row.
    """

    try:
        schema = parse_template_schema(model.template_schema)
        rules = parse_validation_rules(model.validation_rules)
    except TemplateDefinitionError as exc:
        raise TemplateDefinitionError(
            message=f"Template '{model.name}' is malformed: {exc.message}",
            template_id=model.id,
        ) from exc

    return ImportTemplate(
        id=model.id,
        name=model.name,
        description=model.description,
        category_id=model.category_id,
        data_source_id=model.data_source_id,
        schema=schema,
        validation_rules=rules,
        sample_data=model.sample_data,
    )


class TemplateRegistry:
    def get_templates(self, db: Session) -> list[ImportTemplate]:
        """
        Return all active templates ordered by name.

        A malformed template is logged and left out so one bad row does not
        hide the others.
        """

        templates: list[ImportTemplate] = []
        for model in TemplateRepository(db).list_active():
            try:
                templates.append(template_from_model(model))
            except TemplateDefinitionError as exc:
                logger.error("Skipping template id=%s: %s", model.id, exc.message)
        return templates

    def get_template(self, db: Session, template_id: int) -> ImportTemplate:
        model = TemplateRepository(db).get_active(template_id)
        if model is None:
            raise TemplateNotFoundError(template_id)
        return template_from_model(model)


@lru_cache(maxsize=1)
def get_template_registry() -> TemplateRegistry:
    return TemplateRegistry()
