"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from app.db.enums import AdminRole


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # admin_id
    tenant_id: UUID | None  # None for platform admins
    role: str
    token_version: int


class AdminSession(BaseModel):
    """
    Full session context for authenticated admin requests.

    This is returned by get_current_session dependency
    and contains all information needed for authorization.
    """
    admin_id: UUID
    tenant_id: UUID | None
    role: AdminRole  # Validated enum
    email: str
    display_name: str

    @property
    def is_platform_admin(self) -> bool:
        """Platform admins are not bound to a tenant and see every tenant's data."""
        return self.tenant_id is None
