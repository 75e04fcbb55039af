"""Pydantic schemas for audit log entries."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, field_validator


class AuditLogRead(BaseModel):
    id: int
    actor_id: int
    actor_name: str
    action: str
    target_type: str
    target_id: str
    details: str
    before_data: dict[str, Any] | None = None
    after_data: dict[str, Any] | None = None
    created_at: datetime | None

    model_config = {"from_attributes": True}

    @field_validator("before_data", "after_data", mode="before")
    @classmethod
    def _load_json(cls, v: object) -> object:
        if isinstance(v, str):
            return json.loads(v)
        return v
