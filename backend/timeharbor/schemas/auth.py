from typing import Optional
from pydantic import BaseModel


class TokenData(BaseModel):
    user_id: Optional[str] = None
    role: Optional[str] = None


class CurrentUser(BaseModel):
    """Caller identity asserted by the auth collaborator's token."""
    user_id: str
    role: str = "member"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
