"""Auth Pydantic schemas — claims carried by the externally issued JWT."""

from typing import Optional

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Identity decoded from a verified access token."""
    id: str
    email: Optional[str] = None
    role: str = "member"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

