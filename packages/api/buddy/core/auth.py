# This project was developed with assistance from AI tools.
"""Pure auth utility functions with no FastAPI or HTTP dependencies.

Kept apart from ``middleware/auth.py`` so background jobs and tests can
build scopes without pulling in request handling.
"""

from buddy_db.enums import UserRole

from ..schemas.auth import DataScope


def build_data_scope(role: UserRole, user_id: str, bank_id: str | None) -> DataScope:
    """Build data scope rules based on the user's role and tenant."""
    if role == UserRole.ADMIN:
        return DataScope(all_banks=True, bank_id=bank_id)
    if role == UserRole.BORROWER:
        return DataScope(own_data_only=True, user_id=user_id)
    if role == UserRole.EXAMINER:
        return DataScope(bank_id=bank_id, read_only=True)
    if role in (UserRole.BANKER, UserRole.UNDERWRITER):
        return DataScope(bank_id=bank_id)
    # unknown -- no access
    return DataScope()
