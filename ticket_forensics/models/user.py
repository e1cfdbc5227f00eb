from enum import StrEnum
from typing import Optional
from pydantic import BaseModel

ANONYMOUS_USER_ID = "anonymous"


class AccountManagerStyle(StrEnum):
    """How the strategist prefers chat replies to be written."""
    SUCCINCT = "SUCCINCT"
    COLLABORATIVE = "COLLABORATIVE"
    EXECUTIVE = "EXECUTIVE"


class CurrentUser(BaseModel):
    """Caller identity as asserted by the upstream auth gateway."""
    id: str = ANONYMOUS_USER_ID
    email: Optional[str] = None
    account_manager_style: AccountManagerStyle = AccountManagerStyle.COLLABORATIVE

    @property
    def is_anonymous(self) -> bool:
        return self.id == ANONYMOUS_USER_ID
