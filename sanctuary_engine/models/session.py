"""Session bookkeeping kept beside each stored GameState."""

from datetime import datetime

from pydantic import BaseModel


class SessionMeta(BaseModel):
    session_id: str
    last_global_update: int = 0      # Turn of the last global pulse update
    updated_at: datetime
    expires_at: datetime
