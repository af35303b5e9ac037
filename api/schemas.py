from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ServiceRecordModel(BaseModel):
    # Loosely typed: the core coerces each field, unreadable values become None / 0.
    number: Any = None
    registered_at: Any = None
    assigned_at: Any = None
    operator: Any = None
    operational_unit: Any = None
    account: Any = None
    status: Any = None
    client: Any = None
    total_cost: Any = None
    tc: Any = None


class FilterSpecModel(BaseModel):
    operator: List[str] = Field(default_factory=list)
    status: List[str] = Field(default_factory=list)
    client: List[str] = Field(default_factory=list)
    unit: List[str] = Field(default_factory=list)
    date_from: Optional[str] = None
    date_to: Optional[str] = None


class DashboardRequest(BaseModel):
    records: List[ServiceRecordModel] = Field(default_factory=list)
    filters: FilterSpecModel = Field(default_factory=FilterSpecModel)


class ChartsRequest(DashboardRequest):
    refresh: bool = False
