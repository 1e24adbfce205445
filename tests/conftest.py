"""
tests/conftest.py

Shared fixtures: an in-memory SQLite database seeded with reference data and
three import templates, the import services wired with explicit settings,
and a TestClient serving the admin routers against that database.
"""

from __future__ import annotations

from collections.abc import Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 registers all ORM models on Base.metadata
from app.api.errors import register_exception_handlers
from app.api.routers import csv_imports_router, csv_templates_router
from app.config import CSVImportSettings, get_csv_import_settings
from app.services.csv_import_service import CSVImportService, get_csv_import_service
from app.services.import_publish_service import ImportPublishService, get_import_publish_service
from app.services.import_validation_service import (
    ImportValidationService,
    get_import_validation_service,
)
from app.services.template_registry import TemplateRegistry, get_template_registry
from db.base import Base
from db.models import Category, CsvImportTemplate, DataSource, State, Statistic, User
from db.session import get_db

ADMIN_USER_ID = 1
MULTI_TEMPLATE_ID = 1
SINGLE_TEMPLATE_ID = 2
FLEXIBLE_TEMPLATE_ID = 3

SAMPLE_CSV = "State,Year,Category,Measure,Value\nAlabama,2023,Economy,GDP,200000\n"

MULTI_TEMPLATE_SCHEMA = {
    "columns": [
        {"name": "State", "type": "string", "required": True, "mapping": "stateName"},
        {"name": "Year", "type": "number", "required": True, "mapping": "year"},
        {"name": "Category", "type": "string", "required": True, "mapping": "categoryName"},
        {"name": "Measure", "type": "string", "required": True, "mapping": "statisticName"},
        {"name": "Value", "type": "number", "required": True, "mapping": "value"},
    ],
    "expectedHeaders": ["State", "Year", "Category", "Measure", "Value"],
}

SINGLE_TEMPLATE_SCHEMA = {
    "columns": [
        {"name": "State", "type": "string", "required": True, "mapping": "stateName"},
        {"name": "Year", "type": "number", "required": True, "mapping": "year"},
        {"name": "Value", "type": "number", "required": True, "mapping": "value"},
    ],
}

FLEXIBLE_TEMPLATE_SCHEMA = {
    "columns": [
        {"name": "State", "type": "string", "required": True, "mapping": "stateName"},
        {"name": "Year", "type": "number", "required": True, "mapping": "year"},
        {"name": "Measure", "type": "string", "required": True, "mapping": "statisticName"},
        {"name": "Value", "type": "number", "required": True, "mapping": "value"},
    ],
    "flexibleColumns": True,
}


def seed_reference_data(session: Session) -> None:
    session.add(User(id=ADMIN_USER_ID, email="admin@example.org", name="Admin User", role="admin"))
    session.add_all(
        [
            State(id=1, name="Alabama", abbreviation="AL"),
            State(id=2, name="California", abbreviation="CA"),
            State(id=3, name="Texas", abbreviation="TX"),
            State(id=4, name="New York", abbreviation="NY"),
        ]
    )
    session.add_all(
        [
            Category(id=1, name="Economy", sort_order=1),
            Category(id=2, name="Education", sort_order=2),
        ]
    )
    session.add(DataSource(id=1, name="BEA"))
    session.flush()
    session.add_all(
        [
            Statistic(id=1, name="GDP", category_id=1, data_source_id=1, unit="USD"),
            Statistic(id=2, name="Graduation Rate", category_id=2, unit="%"),
        ]
    )
    session.add_all(
        [
            CsvImportTemplate(
                id=MULTI_TEMPLATE_ID,
                name="Multi-Category Data",
                description="One row per state, year, category and measure",
                data_source_id=1,
                template_schema=MULTI_TEMPLATE_SCHEMA,
                validation_rules={"year": [{"type": "range", "value": {"min": 1990, "max": 2100}}]},
                sample_data=SAMPLE_CSV,
            ),
            CsvImportTemplate(
                id=SINGLE_TEMPLATE_ID,
                name="Economy Single Statistic",
                category_id=1,
                data_source_id=1,
                template_schema=SINGLE_TEMPLATE_SCHEMA,
                validation_rules={
                    "value": [{"type": "custom", "value": "non_negative", "message": "Value cannot be negative"}],
                },
            ),
            CsvImportTemplate(
                id=FLEXIBLE_TEMPLATE_ID,
                name="Flexible State Data",
                category_id=1,
                template_schema=FLEXIBLE_TEMPLATE_SCHEMA,
            ),
        ]
    )
    session.commit()


@pytest.fixture()
def engine() -> Iterator[Engine]:
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(test_engine)
        test_engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    with factory() as session:
        seed_reference_data(session)
    return factory


@pytest.fixture()
def db_session(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def settings() -> CSVImportSettings:
    return CSVImportSettings()


@pytest.fixture()
def import_service(settings: CSVImportSettings) -> CSVImportService:
    return CSVImportService(
        min_match_score=settings.min_match_score,
        state_match_threshold=settings.state_match_threshold,
        entity_match_threshold=settings.entity_match_threshold,
        log_row_issues=settings.log_row_issues,
        history_page_size=settings.history_page_size,
        registry=TemplateRegistry(),
    )


@pytest.fixture()
def validation_service(settings: CSVImportSettings) -> ImportValidationService:
    return ImportValidationService(
        large_value_threshold=settings.large_value_threshold,
        error_summary_limit=settings.error_summary_limit,
    )


@pytest.fixture()
def publish_service() -> ImportPublishService:
    return ImportPublishService()


@pytest.fixture()
def api_app(
    session_factory: sessionmaker,
    settings: CSVImportSettings,
    import_service: CSVImportService,
    validation_service: ImportValidationService,
    publish_service: ImportPublishService,
) -> FastAPI:
    application = FastAPI()
    application.include_router(csv_imports_router)
    application.include_router(csv_templates_router)
    register_exception_handlers(application)

    def _get_test_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = _get_test_db
    application.dependency_overrides[get_csv_import_settings] = lambda: settings
    application.dependency_overrides[get_csv_import_service] = lambda: import_service
    application.dependency_overrides[get_import_validation_service] = lambda: validation_service
    application.dependency_overrides[get_import_publish_service] = lambda: publish_service
    application.dependency_overrides[get_template_registry] = TemplateRegistry
    return application


@pytest.fixture()
def client(api_app: FastAPI) -> Iterator[TestClient]:
    with TestClient(api_app) as test_client:
        yield test_client
