"""
Job activity schemas for API responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    job_id: int
    actor_id: Optional[int]
    activity_type: str
    description: str
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="extra_data")
    created_at: datetime


class JobActivityListResponse(BaseModel):
    items: List[JobActivityResponse]
    total: int
