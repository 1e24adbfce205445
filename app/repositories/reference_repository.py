"""
app/repositories/reference_repository.py

Read-only access to the reference tables used for name resolution.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.reference import Category, DataSource, State, Statistic


class ReferenceRepository:
    """
    Loads active states, categories and statistics ordered by primary key.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_active_states(self) -> list[State]:
        stmt = select(State).where(State.is_active.is_(True)).order_by(State.id)
        return list(self._session.scalars(stmt).all())

    def list_active_categories(self) -> list[Category]:
        stmt = select(Category).where(Category.is_active.is_(True)).order_by(Category.id)
        return list(self._session.scalars(stmt).all())

    def list_active_statistics(self) -> list[Statistic]:
        stmt = select(Statistic).where(Statistic.is_active.is_(True)).order_by(Statistic.id)
        return list(self._session.scalars(stmt).all())

    def get_category(self, category_id: int) -> Category | None:
        return self._session.get(Category, category_id)

    def get_data_source(self, data_source_id: int) -> DataSource | None:
        return self._session.get(DataSource, data_source_id)
