from pydantic import BaseModel
from datetime import datetime


class AuditOut(BaseModel):
    id: int
    created_at: datetime
    actor_id: int | None
    actor_email: str
    action: str
    entity_type: str
    entity_id: int | None
    details: dict | None

    class Config:
        from_attributes = True


class AuditPageOut(BaseModel):
    items: list[AuditOut]
    total: int
