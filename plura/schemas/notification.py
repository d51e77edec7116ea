"""Activity log schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class NotificationUser(BaseModel):
    id: str
    name: str
    avatar_url: str | None

    model_config = {"from_attributes": True}


class NotificationRead(BaseModel):
    id: UUID
    notification: str
    agency_id: UUID
    sub_account_id: UUID | None
    created_at: datetime
    user: NotificationUser

    model_config = {"from_attributes": True}
