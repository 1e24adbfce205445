"""
app/api/routers/csv_templates.py

Read-only endpoints for CSV import templates.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.errors import APIError
from app.domain.import_template import ImportTemplate, TemplateDefinitionError, rule_to_dict
from app.schemas.csv_import import (
    SuccessResponse,
    TemplateColumnResponse,
    TemplateResponse,
    TemplateSchemaResponse,
)
from app.services.template_registry import TemplateNotFoundError, TemplateRegistry, get_template_registry
from db.session import get_db

router = APIRouter(prefix="/api/admin/csv-templates", tags=["csv-templates"])


def template_response(template: ImportTemplate) -> TemplateResponse:
    rules = template.validation_rules
    return TemplateResponse(
        id=template.id,
        name=template.name,
        description=template.description,
        category_id=template.category_id,
        data_source_id=template.data_source_id,
        template_schema=TemplateSchemaResponse(
            columns=[
                TemplateColumnResponse(
                    name=column.name,
                    type=column.type,
                    required=column.required,
                    mapping=column.mapping,
                    validation=rule_to_dict(column.validation) if column.validation is not None else None,
                )
                for column in template.schema.columns
            ],
            expected_headers=list(template.schema.expected_headers),
            flexible_columns=template.schema.flexible_columns,
        ),
        validation_rules={
            key: [rule_to_dict(rule) for rule in group]
            for key, group in (
                ("stateName", rules.state_name),
                ("year", rules.year),
                ("value", rules.value),
                ("custom", rules.custom),
            )
            if group
        },
        sample_data=template.sample_data,
    )


@router.get("", response_model=SuccessResponse[list[TemplateResponse]])
def list_templates(
    db: Session = Depends(get_db),
    registry: TemplateRegistry = Depends(get_template_registry),
) -> SuccessResponse[list[TemplateResponse]]:
    templates = registry.get_templates(db)
    return SuccessResponse[list[TemplateResponse]](data=[template_response(item) for item in templates])


@router.get("/{template_id}", response_model=SuccessResponse[TemplateResponse])
def get_template(
    template_id: int,
    db: Session = Depends(get_db),
    registry: TemplateRegistry = Depends(get_template_registry),
) -> SuccessResponse[TemplateResponse]:
    try:
        template = registry.get_template(db, template_id)
    except TemplateNotFoundError as exc:
        raise APIError(status_code=status.HTTP_404_NOT_FOUND, error=str(exc)) from exc
    except TemplateDefinitionError as exc:
        raise APIError(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Template definition is invalid",
            details=exc.to_dict(),
        ) from exc

    return SuccessResponse[TemplateResponse](data=template_response(template))
