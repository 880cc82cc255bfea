"""
SQL-backed ledger store.

One row per user in `credit_ledgers` plus append-only rows in
`usage_history`. Writes use optimistic concurrency: the UPDATE only applies
when the row still carries the version that was read, otherwise the mutation
is re-run against the fresh row.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from marinova.core.config import settings
from marinova.core.database import (
    create_all_tables,
    credit_ledgers,
    get_db_session,
    get_engine,
    usage_history,
)
from marinova.core.errors import LedgerConflictError, NotFoundError
from marinova.features.ledger.store import Mutation, T, appended_records
from marinova.models.ledger import CreditLedger, UsageRecord
from marinova.models.plan import FeatureAllowances, FeatureName, SubscriptionPlan

logger = logging.getLogger("marinova")

_POOL_COLUMNS: Dict[FeatureName, str] = {
    FeatureName.WEATHER_BRIEF: "weather_brief_credits",
    FeatureName.RESEARCH_LAB: "research_lab_credits",
    FeatureName.CHAT: "chat_credits",
    FeatureName.INSIGHTS: "insights_credits",
}


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _ledger_values(ledger: CreditLedger) -> Dict[str, object]:
    limits = ledger.monthly_credits.to_limits()
    values: Dict[str, object] = {
        "subscription_status": ledger.subscription_status.value,
        "usage_credits": ledger.usage_credits,
        "credit_reset_date": _as_utc(ledger.credit_reset_date),
        "is_email_verified": ledger.is_email_verified,
    }
    for feature, column in _POOL_COLUMNS.items():
        values[column] = limits[feature.value]
    return values


def _insert_history(session: Session, user_id: str, records: Tuple[UsageRecord, ...]) -> None:
    if not records:
        return
    session.execute(
        insert(usage_history),
        [{"user_id": user_id, "feature": r.feature.value, "used_at": _as_utc(r.used_at)} for r in records],
    )


class SqlLedgerStore:
    def __init__(self, engine=None, max_retries: Optional[int] = None):
        self._engine = engine or get_engine()
        self._sessions = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        self._max_retries = max_retries if max_retries is not None else settings.LEDGER_COMMIT_RETRIES
        create_all_tables(self._engine)

    def _load(self, session: Session, user_id: str) -> Optional[CreditLedger]:
        row = session.execute(
            select(credit_ledgers).where(credit_ledgers.c.user_id == user_id)
        ).first()
        if not row:
            return None
        history = session.execute(
            select(usage_history.c.feature, usage_history.c.used_at)
            .where(usage_history.c.user_id == user_id)
            .order_by(usage_history.c.id)
        ).all()
        monthly = FeatureAllowances.from_limits(
            {feature: getattr(row, column) for feature, column in _POOL_COLUMNS.items()}
        )
        return CreditLedger(
            user_id=row.user_id,
            subscription_status=SubscriptionPlan(row.subscription_status),
            usage_credits=row.usage_credits,
            monthly_credits=monthly,
            credit_reset_date=_as_utc(row.credit_reset_date),
            usage_history=tuple(UsageRecord(FeatureName(h.feature), _as_utc(h.used_at)) for h in history),
            is_email_verified=bool(row.is_email_verified),
            version=row.version,
        )

    def get(self, user_id: str) -> Optional[CreditLedger]:
        with get_db_session(self._sessions) as session:
            return self._load(session, user_id)

    def create(self, ledger: CreditLedger) -> CreditLedger:
        try:
            with get_db_session(self._sessions) as session:
                session.execute(
                    insert(credit_ledgers).values(
                        user_id=ledger.user_id, version=ledger.version, **_ledger_values(ledger)
                    )
                )
                _insert_history(session, ledger.user_id, ledger.usage_history)
            return ledger
        except IntegrityError:
            # Lost the race to another first request for the same user
            existing = self.get(ledger.user_id)
            if existing is None:
                raise
            return existing

    def update(self, user_id: str, mutate: Mutation[T]) -> Tuple[CreditLedger, T]:
        for attempt in range(1, self._max_retries + 1):
            with get_db_session(self._sessions) as session:
                current = self._load(session, user_id)
                if current is None:
                    raise NotFoundError("User not found")
                updated, result = mutate(current)
                if updated is current:
                    return current, result
                new_records = appended_records(current, updated)
                stored = updated.evolve(version=current.version + 1)
                applied = session.execute(
                    update(credit_ledgers)
                    .where(credit_ledgers.c.user_id == user_id)
                    .where(credit_ledgers.c.version == current.version)
                    .values(version=stored.version, **_ledger_values(stored))
                ).rowcount
                if applied == 1:
                    _insert_history(session, user_id, new_records)
                    return stored, result
            logger.info(
                "ledger.version_conflict",
                extra={"user_id": user_id, "event_type": "ledger_conflict", "attempt": attempt},
            )

        logger.warning("ledger.conflict_retries_exhausted", extra={"user_id": user_id, "error_code": "ledger_conflict"})
        raise LedgerConflictError("Ledger was modified concurrently, please retry")
