# This project was developed with assistance from AI tools.
"""Shared data scope filtering for service queries.

Centralizes the DataScope -> SQL WHERE logic so that each resource service
applies the same tenant rules. ``join_to_deal`` handles child-entity
queries (documents, checklist items, facts, votes) that must join to Deal
before the tenant filter can apply.
"""

import uuid

from buddy_db import Deal
from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.auth import DataScope, UserContext


def apply_data_scope(stmt, scope: DataScope, user: UserContext, *, join_to_deal=None):
    """Apply data scope filtering to a SQLAlchemy query.

    Args:
        stmt: A SQLAlchemy select statement.
        scope: The caller's DataScope.
        user: The caller's UserContext.
        join_to_deal: ORM relationship attribute to join to reach Deal
            (e.g., ``DealDocument.deal``). Pass ``None`` when querying Deal
            directly.

    Returns:
        The filtered statement. A scope with no grant matches nothing.
    """
    if scope.all_banks:
        return stmt

    if join_to_deal is not None:
        stmt = stmt.join(join_to_deal)

    if scope.own_data_only and scope.user_id:
        return stmt.where(Deal.borrower_user_id == scope.user_id)
    if scope.bank_id:
        return stmt.where(Deal.bank_id == scope.bank_id)
    return stmt.where(false())


async def get_scoped_deal(session: AsyncSession, user: UserContext, deal_id: uuid.UUID) -> Deal | None:
    """Return the deal if it exists and is visible to the caller, else None.

    Out-of-scope and missing deals are indistinguishable. Routes
    map both to 404 so deal ids from other tenants are never confirmed.
    """
    stmt = select(Deal).where(Deal.id == deal_id)
    stmt = apply_data_scope(stmt, user.data_scope, user)
    result = await session.execute(stmt)
    return result.unique().scalar_one_or_none()
