from datetime import datetime

from src.shared.schemas.base import BaseSchema


class AuditEntryResponse(BaseSchema):
    id: int
    user_id: str | None
    action: str
    entity_type: str
    entity_id: int
    entity_identifier: str | None
    old_values: dict | None
    new_values: dict | None
    comment: str | None
    created_at: datetime


class QueueStatsResponse(BaseSchema):
    queue: str
    visible: int
    in_flight: int
    oldest_age_seconds: int
    dead_letters: int
    age_alarm: bool
    depth_alarm: bool
    dead_letter_alarm: bool


class RedriveResult(BaseSchema):
    queue: str
    redriven: int


class OverdueScanRequested(BaseSchema):
    event_id: str
