"""
Source registry: the only writer of ``news_sources`` rows.

Holds configuration and live fetch statistics for every source. Each public
method is one session (read-modify-write inside a single transaction), so
state is durable by the time a call returns.

Health math:
  health_score = round(100 * success_count / fetch_count), halves rounded up
  avg_items_per_fetch = (old_avg * old_fetch_count + items) / new_fetch_count
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from newsreel.database import (
    Database, SourceModel, utcnow, from_storage, dump_json, load_json,
)
from newsreel.schemas import (
    Source, SourceCreate, SourceUpdate, SourceStats, clamp_score, percent, round_half_up,
)

logger = logging.getLogger(__name__)


class DuplicateSourceError(ValueError):
    """A source with this URL is already registered."""

    def __init__(self, url: str):
        super().__init__(f"Source URL already exists: {url}")
        self.url = url


class SourceValidationError(ValueError):
    """Manual source input is missing required fields or has a bad kind."""


class SourceNotFoundError(LookupError):
    def __init__(self, source_id: int):
        super().__init__(f"Source not found: {source_id}")
        self.source_id = source_id


# Columns the monitor (and update()) may touch directly. Counters and the
# timestamps set by record_fetch_attempt are not in here.
_UPDATABLE = {
    "name", "url", "source_type", "category", "language", "country",
    "credibility_score", "is_active", "is_verified", "selector",
    "fetch_config", "health_score", "metadata",
}
_SCORES = {"credibility_score", "health_score"}
# NOT NULL columns: an explicit None here is rejected
_REQUIRED = {"name", "url", "source_type", "credibility_score", "is_active", "is_verified", "health_score"}
_JSON = {"fetch_config"}


def _to_source(row: SourceModel) -> Source:
    return Source(
        id=row.id,
        name=row.name,
        url=row.url,
        source_type=row.source_type,
        category=row.category or "general",
        language=row.language or "en",
        country=row.country,
        credibility_score=row.credibility_score,
        is_active=bool(row.is_active),
        is_verified=bool(row.is_verified),
        selector=row.selector,
        fetch_config=load_json(row.fetch_config),
        last_fetch_at=from_storage(row.last_fetch_at),
        last_success_at=from_storage(row.last_success_at),
        last_error=row.last_error,
        fetch_count=row.fetch_count or 0,
        success_count=row.success_count or 0,
        error_count=row.error_count or 0,
        avg_items_per_fetch=row.avg_items_per_fetch or 0.0,
        health_score=row.health_score,
        added_by=row.added_by or "manual",
        created_at=from_storage(row.created_at),
        updated_at=from_storage(row.updated_at),
        metadata=load_json(row.meta, {}),
    )


def _apply(row: SourceModel, changes: Mapping[str, Any]) -> None:
    for key, value in changes.items():
        if key not in _UPDATABLE:
            raise ValueError(f"Field is not updatable: {key}")
        if key in _SCORES:
            value = clamp_score(value)
        elif key in _JSON:
            value = dump_json(value)
        elif key == "source_type" and hasattr(value, "value"):
            value = value.value
        if key == "metadata":
            row.meta = dump_json(value or {})
        else:
            setattr(row, key, value)


class SourceRegistry:
    """CRUD plus fetch bookkeeping over the ``news_sources`` table."""

    def __init__(self, db: Database):
        self.db = db

    # ── Reads ─────────────────────────────────────────────────────────

    def list_active(self, min_health: int = 0) -> List[Source]:
        """Active sources with health >= min_health, most credible first."""
        return self.list_all(active_only=True, min_health=min_health)

    def list_all(self, active_only: bool = False, min_health: int = 0) -> List[Source]:
        with self.db.get_session() as session:
            q = session.query(SourceModel)
            if active_only:
                q = q.filter(SourceModel.is_active.is_(True))
            if min_health:
                q = q.filter(SourceModel.health_score >= min_health)
            rows = q.order_by(
                SourceModel.credibility_score.desc(),
                SourceModel.health_score.desc(),
                SourceModel.id.asc(),
            ).all()
            return [_to_source(r) for r in rows]

    def get_by_id(self, source_id: int) -> Optional[Source]:
        with self.db.get_session() as session:
            row = session.get(SourceModel, source_id)
            return _to_source(row) if row else None

    def get_by_url(self, url: str) -> Optional[Source]:
        with self.db.get_session() as session:
            row = session.query(SourceModel).filter(SourceModel.url == url).first()
            return _to_source(row) if row else None

    def credibility_map(self) -> Dict[str, int]:
        """Source name → credibility score, from the live records.

        Two sources sharing a display name resolve to the higher score.
        """
        scores: Dict[str, int] = {}
        for source in self.list_all():
            scores[source.name] = max(scores.get(source.name, 0), source.credibility_score)
        return scores

    def stats(self) -> SourceStats:
        """Aggregate counts across every registered source."""
        with self.db.get_session() as session:
            total, active, verified, health_sum, cred_sum, fetches, successes = session.query(
                func.count(SourceModel.id),
                func.sum(case((SourceModel.is_active.is_(True), 1), else_=0)),
                func.sum(case((SourceModel.is_verified.is_(True), 1), else_=0)),
                func.sum(SourceModel.health_score),
                func.sum(SourceModel.credibility_score),
                func.sum(SourceModel.fetch_count),
                func.sum(SourceModel.success_count),
            ).one()
        total = total or 0
        fetches = fetches or 0
        successes = successes or 0
        return SourceStats(
            total=total,
            active=active or 0,
            verified=verified or 0,
            avg_health=round_half_up(health_sum or 0, total),
            avg_credibility=round_half_up(cred_sum or 0, total),
            total_fetches=fetches,
            total_successes=successes,
            success_rate=percent(successes, fetches),
        )

    # ── Writes ────────────────────────────────────────────────────────

    def add(self, data: Union[SourceCreate, Mapping[str, Any]]) -> Source:
        """Register a new source. Raises SourceValidationError / DuplicateSourceError."""
        if not isinstance(data, SourceCreate):
            try:
                data = SourceCreate(**dict(data))
            except ValidationError as e:
                raise SourceValidationError(_describe(e)) from e
        return self.upsert(data)

    def upsert(
        self,
        data: Union[SourceCreate, SourceUpdate],
        source_id: Optional[int] = None,
    ) -> Source:
        """Insert (no ``source_id``) or partially update a source.

        Insert fails with DuplicateSourceError if the URL is taken. Update
        applies only the fields that were explicitly set on ``data`` and
        always refreshes ``updated_at``.
        """
        if source_id is None:
            if not isinstance(data, SourceCreate):
                raise SourceValidationError("name, url and source_type are required")
            return self._insert(data)
        return self.update(source_id, data.model_dump(exclude_unset=True))

    @staticmethod
    def _url_taken(session, url: str, exclude_id: Optional[int] = None) -> bool:
        q = session.query(SourceModel.id).filter(SourceModel.url == url)
        if exclude_id is not None:
            q = q.filter(SourceModel.id != exclude_id)
        return q.first() is not None

    def _insert(self, data: SourceCreate) -> Source:
        try:
            return self._insert_row(data)
        except IntegrityError as e:
            # Lost a race with another writer on the unique url
            raise DuplicateSourceError(data.url) from e

    def _insert_row(self, data: SourceCreate) -> Source:
        with self.db.get_session() as session:
            if self._url_taken(session, data.url):
                raise DuplicateSourceError(data.url)
            now = utcnow()
            row = SourceModel(
                name=data.name,
                url=data.url,
                source_type=data.source_type,
                category=data.category,
                language=data.language,
                country=data.country,
                credibility_score=clamp_score(data.credibility_score),
                is_active=data.is_active,
                is_verified=data.is_verified,
                selector=data.selector,
                fetch_config=dump_json(data.fetch_config),
                health_score=100,
                added_by=data.added_by,
                created_at=now,
                updated_at=now,
                meta=dump_json(data.metadata or {}),
            )
            session.add(row)
            session.flush()
            logger.info(f"[OK] Source added: {row.name} ({row.url})")
            return _to_source(row)

    def update(self, source_id: int, changes: Mapping[str, Any]) -> Source:
        """Apply ``changes`` to one source. Scores are clamped to [0, 100].

        Raises SourceValidationError if a required field is set to None.
        """
        nulled = sorted(k for k in _REQUIRED if k in changes and changes[k] is None)
        if nulled:
            raise SourceValidationError(f"Fields cannot be null: {', '.join(nulled)}")

        new_url = changes.get("url")
        try:
            with self.db.get_session() as session:
                row = session.get(SourceModel, source_id)
                if row is None:
                    raise SourceNotFoundError(source_id)
                if new_url and new_url != row.url and self._url_taken(session, new_url, source_id):
                    raise DuplicateSourceError(new_url)
                _apply(row, changes)
                row.updated_at = utcnow()
                session.flush()
                return _to_source(row)
        except IntegrityError as e:
            if not new_url:
                raise
            raise DuplicateSourceError(new_url) from e

    def delete(self, source_id: int) -> bool:
        with self.db.get_session() as session:
            row = session.get(SourceModel, source_id)
            if row is None:
                return False
            session.delete(row)
            logger.info(f"Source deleted: {row.name} ({row.url})")
            return True

    def record_fetch_attempt(
        self,
        source_id: int,
        success: bool,
        item_count: int = 0,
        error: Optional[str] = None,
    ) -> Source:
        """Book one fetch attempt and recompute health and the running average."""
        with self.db.get_session() as session:
            row = session.get(SourceModel, source_id)
            if row is None:
                raise SourceNotFoundError(source_id)

            old_fetch = row.fetch_count or 0
            fetch_count = old_fetch + 1
            success_count = (row.success_count or 0) + (1 if success else 0)
            error_count = (row.error_count or 0) + (0 if success else 1)
            old_avg = row.avg_items_per_fetch or 0.0

            now = utcnow()
            row.fetch_count = fetch_count
            row.success_count = success_count
            row.error_count = error_count
            row.avg_items_per_fetch = (old_avg * old_fetch + max(item_count, 0)) / fetch_count
            row.health_score = clamp_score(percent(success_count, fetch_count))
            row.last_fetch_at = now
            if success:
                row.last_success_at = now
            else:
                row.last_error = error or "unknown error"
            row.updated_at = now
            session.flush()
            return _to_source(row)


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "source"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)
