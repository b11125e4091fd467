from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, field_validator

MAX_REPORT_LIMIT = 1000


class CustomReportRequest(BaseModel):
    entity_type: str
    metrics: List[str] = []
    group_by: Optional[str] = None
    sort_by: Optional[str] = None
    sort_descending: bool = True
    filter_by: Optional[str] = None
    filter_value: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = 100

    @field_validator("entity_type")
    @classmethod
    def _normalize_entity(cls, v: str):
        return (v or "").strip().lower()

    @field_validator("limit")
    @classmethod
    def _clamp_limit(cls, v: int):
        if v < 1:
            raise ValueError("limit must be >= 1")
        return min(v, MAX_REPORT_LIMIT)


class CustomReportResponse(BaseModel):
    entity_type: str
    columns: List[str]
    rows: List[Dict[str, Any]]
    total: int
