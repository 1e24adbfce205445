"""
app/mappers/reference_resolver.py

Resolves the free-text state, category and statistic names of mapped CSV
records to reference-table ids.

States are looked up directly by name, abbreviation or space-free name before
falling back to fuzzy matching. Categories and statistics are always fuzzy
matched. An accepted fuzzy match replaces the record's text with the canonical
name and is reported as a warning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from app.domain.csv_import import (
    FailureCategory,
    IssueSeverity,
    IssueStage,
    MappedRecord,
    RowIssue,
)
from app.mappers.fuzzy_matcher import DEFAULT_MIN_SCORE, find_best_match, normalize_for_match
from app.repositories.reference_repository import ReferenceRepository


@dataclass(frozen=True)
class ReferenceEntry:
    id: int
    name: str
    abbreviation: str | None = None


@dataclass(frozen=True)
class ReferenceSnapshot:
    """
    Active reference rows, each list ordered by primary key.
    """

    states: tuple[ReferenceEntry, ...] = ()
    categories: tuple[ReferenceEntry, ...] = ()
    statistics: tuple[ReferenceEntry, ...] = ()

    @classmethod
    def load(cls, repository: ReferenceRepository) -> "ReferenceSnapshot":
        return cls(
            states=tuple(
                ReferenceEntry(id=state.id, name=state.name, abbreviation=state.abbreviation)
                for state in repository.list_active_states()
            ),
            categories=tuple(
                ReferenceEntry(id=category.id, name=category.name)
                for category in repository.list_active_categories()
            ),
            statistics=tuple(
                ReferenceEntry(id=statistic.id, name=statistic.name)
                for statistic in repository.list_active_statistics()
            ),
        )

    def category_name(self, category_id: int) -> str | None:
        for category in self.categories:
            if category.id == category_id:
                return category.name
        return None


@dataclass(frozen=True)
class Resolution:
    entity_id: int | None
    canonical_name: str | None = None
    score: float | None = None
    fuzzy: bool = False


@dataclass
class RecordResolution:
    state_id: int | None = None
    category_id: int | None = None
    statistic_id: int | None = None
    issues: list[RowIssue] = field(default_factory=list)


def _first_id_by_name(entries: Sequence[ReferenceEntry]) -> dict[str, int]:
    ids: dict[str, int] = {}
    for entry in entries:
        ids.setdefault(entry.name, entry.id)
    return ids


class ReferenceResolver:
    """
    Resolves record names against one reference snapshot.
    """

    def __init__(
        self,
        snapshot: ReferenceSnapshot,
        *,
        min_match_score: float = DEFAULT_MIN_SCORE,
        state_threshold: float = 0.8,
        entity_threshold: float = 0.7,
    ) -> None:
        self._snapshot = snapshot
        self._min_match_score = min_match_score
        self._state_threshold = state_threshold
        self._entity_threshold = entity_threshold

        self._state_lookup: dict[str, ReferenceEntry] = {}
        for state in snapshot.states:
            for key in (state.name, state.abbreviation, state.name.replace(" ", "")):
                if key:
                    self._state_lookup.setdefault(key.strip().lower(), state)
        self._state_ids = _first_id_by_name(snapshot.states)
        self._category_ids = _first_id_by_name(snapshot.categories)
        self._statistic_ids = _first_id_by_name(snapshot.statistics)

    @property
    def snapshot(self) -> ReferenceSnapshot:
        return self._snapshot

    def resolve_state(self, name: str | None) -> Resolution:
        text = normalize_for_match(name)
        if not text:
            return Resolution(entity_id=None)

        for key in (text, text.replace(" ", "")):
            entry = self._state_lookup.get(key)
            if entry is not None:
                return Resolution(entity_id=entry.id, canonical_name=entry.name, score=1.0)

        return self._fuzzy(name, self._state_ids, threshold=self._state_threshold)

    def resolve_category(self, name: str | None) -> Resolution:
        return self._fuzzy(name, self._category_ids, threshold=self._entity_threshold)

    def resolve_statistic(self, name: str | None) -> Resolution:
        return self._fuzzy(name, self._statistic_ids, threshold=self._entity_threshold)

    def _fuzzy(self, name: str | None, ids_by_name: dict[str, int], *, threshold: float) -> Resolution:
        if not normalize_for_match(name):
            return Resolution(entity_id=None)

        match = find_best_match(name, ids_by_name.keys(), min_score=self._min_match_score)
        if match is None or match.score < threshold:
            return Resolution(entity_id=None, score=match.score if match else None)

        return Resolution(
            entity_id=ids_by_name[match.value],
            canonical_name=match.value,
            score=match.score,
            fuzzy=normalize_for_match(name) != normalize_for_match(match.value),
        )

    def resolve_record(self, record: MappedRecord) -> RecordResolution:
        """
        Resolve all three names on ``record``, rewriting fuzzy-matched text
        to its canonical form.

        Unresolved names become reference errors on the returned resolution.
        """

        result = RecordResolution()

        state = self.resolve_state(record.state_name)
        result.state_id = state.entity_id
        record.state_name = self._apply(record, "state", record.state_name, state, result)

        category = self.resolve_category(record.category_name)
        result.category_id = category.entity_id
        record.category_name = self._apply(record, "category", record.category_name, category, result)

        statistic = self.resolve_statistic(record.statistic_name)
        result.statistic_id = statistic.entity_id
        record.statistic_name = self._apply(
            record, "statistic", record.statistic_name, statistic, result
        )

        return result

    def _apply(
        self,
        record: MappedRecord,
        kind: str,
        raw_name: str | None,
        resolution: Resolution,
        result: RecordResolution,
    ) -> str | None:
        if not raw_name:
            return raw_name

        if resolution.entity_id is None:
            result.issues.append(
                RowIssue(
                    row_number=record.row_number,
                    message=f'{kind.capitalize()} "{raw_name}" not found in database',
                    stage=IssueStage.REFERENCE,
                    category=FailureCategory.INVALID_REFERENCE,
                    field=kind,
                    value=raw_name,
                )
            )
            return raw_name

        if resolution.fuzzy:
            result.issues.append(
                RowIssue(
                    row_number=record.row_number,
                    message=(
                        f'{kind.capitalize()} "{raw_name}" matched to '
                        f'"{resolution.canonical_name}" (similarity {resolution.score:.2f})'
                    ),
                    severity=IssueSeverity.WARNING,
                    stage=IssueStage.MAPPING,
                    category=FailureCategory.FUZZY_MATCH,
                    field=kind,
                    value=raw_name,
                )
            )

        return resolution.canonical_name or raw_name
