# This project was developed with assistance from AI tools.
"""Normalized financial facts.

A fact is identified by (deal, fact_type, fact_key, fact_period,
owner_type, owner_entity_id). Writes are batch upserts on that identity,
so re-extracting a document replaces values instead of duplicating them.
"""

import logging
import uuid
from decimal import Decimal

from buddy_db import FinancialFact
from buddy_db.enums import FactOwnerType
from buddy_db.ids import uuid7
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.auth import UserContext
from .deal import require_deal
from .ledger import emit_ledger_event

logger = logging.getLogger(__name__)

_IDENTITY = ["deal_id", "fact_type", "fact_key", "fact_period", "owner_type", "owner_entity_id"]


def build_upsert_statement(rows: list[dict]):
    """INSERT ... ON CONFLICT (identity) DO UPDATE for a batch of fact rows."""
    stmt = pg_insert(FinancialFact).values(rows)
    return stmt.on_conflict_do_update(
        index_elements=_IDENTITY,
        set_={
            "value_num": stmt.excluded.value_num,
            "value_text": stmt.excluded.value_text,
            "provenance": stmt.excluded.provenance,
            "updated_at": func.now(),
        },
    )


def _fact_row(deal_id: uuid.UUID, bank_id: str, fact: dict) -> dict:
    owner_type = FactOwnerType(fact.get("owner_type") or FactOwnerType.DEAL)
    return {
        "id": uuid7(),
        "deal_id": deal_id,
        "bank_id": bank_id,
        "fact_type": fact["fact_type"],
        "fact_key": fact["fact_key"],
        "fact_period": fact.get("fact_period") or "",
        "value_num": fact.get("value_num"),
        "value_text": fact.get("value_text"),
        "owner_type": owner_type,
        "owner_entity_id": fact.get("owner_entity_id") or "",
        "provenance": fact.get("provenance"),
    }


def _dedupe(rows: list[dict]) -> list[dict]:
    """Keep the last row per identity; Postgres rejects a batch that hits one row twice."""
    by_identity = {}
    for row in rows:
        by_identity[tuple(row[k] for k in _IDENTITY)] = row
    return list(by_identity.values())


async def upsert_financial_facts(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
    facts: list[dict],
) -> int:
    """Upsert a batch of facts for a deal.

    Args:
        facts: Dicts with fact_type, fact_key and optionally fact_period,
            value_num, value_text, owner_type, owner_entity_id, provenance.

    Returns:
        Number of distinct facts written.

    Raises:
        DealNotFoundError: deal missing or out of scope.
    """
    deal = await require_deal(session, user, deal_id)
    if not facts:
        return 0

    rows = _dedupe([_fact_row(deal.id, deal.bank_id, f) for f in facts])
    await session.execute(build_upsert_statement(rows))

    await emit_ledger_event(
        session,
        deal_id=deal.id,
        bank_id=deal.bank_id,
        kind="deal.facts.upserted",
        stage=deal.lifecycle_stage.value,
        actor_user_id=user.user_id,
        payload={
            "count": len(rows),
            "fact_types": sorted({r["fact_type"] for r in rows}),
        },
    )
    await session.commit()
    logger.info("Upserted %d financial facts for deal %s", len(rows), deal_id)
    return len(rows)


async def list_financial_facts(
    session: AsyncSession,
    user: UserContext,
    deal_id: uuid.UUID,
    *,
    fact_type: str | None = None,
) -> list[FinancialFact]:
    """Facts for a deal. Raises DealNotFoundError."""
    await require_deal(session, user, deal_id)
    return await _load_facts(session, deal_id, fact_type=fact_type)


async def _load_facts(
    session: AsyncSession,
    deal_id: uuid.UUID,
    *,
    fact_type: str | None = None,
) -> list[FinancialFact]:
    stmt = (
        select(FinancialFact)
        .where(FinancialFact.deal_id == deal_id)
        .order_by(FinancialFact.fact_type, FinancialFact.fact_key, FinancialFact.fact_period)
        .execution_options(populate_existing=True)
    )
    if fact_type:
        stmt = stmt.where(FinancialFact.fact_type == fact_type)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_financial_facts(session: AsyncSession, deal_id: uuid.UUID) -> int:
    """Does NOT enforce data scope -- caller must check access to the deal first."""
    stmt = select(func.count(FinancialFact.id)).where(FinancialFact.deal_id == deal_id)
    return (await session.execute(stmt)).scalar() or 0


def _fact_value(fact: FinancialFact):
    if fact.value_num is not None:
        return float(fact.value_num) if isinstance(fact.value_num, Decimal) else fact.value_num
    return fact.value_text


def facts_as_tree(facts: list[FinancialFact]) -> dict:
    """Nest facts as ``{fact_type: {fact_key: value}}`` for policy evaluation.

    Deal-level facts only. When a key has several periods the latest
    period (lexically greatest, so "2024" beats "2023") wins.
    """
    tree: dict[str, dict] = {}
    chosen_period: dict[tuple[str, str], str] = {}
    for fact in facts:
        if FactOwnerType(fact.owner_type) != FactOwnerType.DEAL:
            continue
        ident = (fact.fact_type, fact.fact_key)
        period = fact.fact_period or ""
        if ident in chosen_period and chosen_period[ident] > period:
            continue
        chosen_period[ident] = period
        tree.setdefault(fact.fact_type, {})[fact.fact_key] = _fact_value(fact)
    return tree
