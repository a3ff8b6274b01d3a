"""Auth schemas."""

from uuid import UUID

from pydantic import BaseModel


# ── Current User ───────────────────────────────────
class CurrentUser(BaseModel):
    id: UUID
    email: str
    role: str
    permissions: list[str]
    vendor_id: UUID | None = None
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
