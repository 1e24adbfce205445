"""
app/repositories/data_point_repository.py

Persistence for import sessions and production data points.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from db.models.import_session import DataPoint, ImportSession

DataPointKey = tuple[int, int, int]


class DataPointRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def find_existing_keys(self, keys: Iterable[DataPointKey]) -> set[DataPointKey]:
        """
        Return the ``(state_id, statistic_id, year)`` keys that already have
        a data point, using one query for the whole batch.
        """

        wanted = set(keys)
        if not wanted:
            return set()

        state_ids = {key[0] for key in wanted}
        statistic_ids = {key[1] for key in wanted}
        years = {key[2] for key in wanted}
        stmt = (
            select(DataPoint.state_id, DataPoint.statistic_id, DataPoint.year)
            .where(
                DataPoint.state_id.in_(state_ids),
                DataPoint.statistic_id.in_(statistic_ids),
                DataPoint.year.in_(years),
            )
            .distinct()
        )
        found = {
            (int(state_id), int(statistic_id), int(year))
            for state_id, statistic_id, year in self._session.execute(stmt).all()
        }
        return found & wanted

    def create_session(
        self,
        *,
        name: str,
        description: str | None,
        data_source_id: int | None,
        data_year: int | None,
        csv_import_id: int | None,
    ) -> ImportSession:
        import_session = ImportSession(
            name=name,
            description=description,
            data_source_id=data_source_id,
            data_year=data_year,
            record_count=0,
            csv_import_id=csv_import_id,
            is_active=True,
        )
        self._session.add(import_session)
        self._session.flush()
        return import_session

    def bulk_insert(self, rows: Sequence[dict[str, Any]]) -> int:
        if not rows:
            return 0
        self._session.execute(insert(DataPoint), list(rows))
        return len(rows)

    def get_active_session_for_import(self, csv_import_id: int) -> ImportSession | None:
        stmt = (
            select(ImportSession)
            .where(
                ImportSession.csv_import_id == csv_import_id,
                ImportSession.is_active.is_(True),
            )
            .order_by(ImportSession.id.desc())
        )
        return self._session.execute(stmt).scalars().first()

    def delete_for_session(self, import_session_id: int) -> int:
        stmt = (
            delete(DataPoint)
            .where(DataPoint.import_session_id == import_session_id)
        )
        result = self._session.execute(stmt)
        return int(result.rowcount or 0)
