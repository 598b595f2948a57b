"""
Records returned by the companion attendance API.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Branch(BaseModel):
    """A branch (site) workers are assigned to."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str


class Worker(BaseModel):
    """Worker list row, without documents."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str
    branch_id: Optional[str] = None
    arrival_date: Optional[str] = None
    exit_date: Optional[str] = None
    exit_reason: Optional[str] = None
    status: Optional[str] = None
    assigned_area: Optional[str] = None
    plan: Optional[str] = None
    updated_at: Optional[str] = None


class WorkerPage(BaseModel):
    """One page of a branch's workers."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    workers: List[Worker] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = Field(default=50, alias="pageSize")
    total_pages: int = Field(default=0, alias="totalPages")


class WorkersDelta(BaseModel):
    """Workers created or modified since a sync timestamp."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    workers: List[Worker] = Field(default_factory=list)
    new_sync_timestamp: str = Field(alias="newSyncTimestamp")
