# This project was developed with assistance from AI tools.
"""Authentication and authorization schemas."""

from buddy_db.enums import UserRole
from pydantic import BaseModel, ConfigDict, Field


class DataScope(BaseModel):
    """Data visibility rules injected by RBAC middleware."""

    bank_id: str | None = None
    own_data_only: bool = False
    user_id: str | None = None
    read_only: bool = False
    all_banks: bool = False


class UserContext(BaseModel):
    """Injected by auth middleware into every authenticated request."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: UserRole
    email: str
    name: str
    bank_id: str | None = None
    data_scope: DataScope = Field(default_factory=DataScope)


class TokenPayload(BaseModel):
    """Decoded JWT claims. Role and bank claim names are configurable."""

    model_config = ConfigDict(extra="allow")

    sub: str
    email: str = ""
    preferred_username: str = ""
    name: str = ""

    def claim(self, name: str):
        """Return an arbitrary claim by name, or None."""
        return (self.model_extra or {}).get(name, getattr(self, name, None))
