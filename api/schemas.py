from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class FilterStateModel(BaseModel):
    query: str = ""
    group: str = ""
    subgroup: str = ""
    source: str = ""


class ExplorerRequest(BaseModel):
    filters: FilterStateModel = Field(default_factory=FilterStateModel)
    scroll_offset: float = 0.0
    adjusted: bool = False


class DraftModel(BaseModel):
    text: str = ""


class SaveScenarioRequest(BaseModel):
    name: str
    description: str = ""


class ScenarioModel(BaseModel):
    name: str
    adjustments: Dict[str, float]
    description: str = ""
    created_at: str
    adjustment_count: int


class NotificationModel(BaseModel):
    id: int
    message: str
    severity: Literal["info", "success", "error"]
    created_at: float
    expires_at: float


class MetaResponse(BaseModel):
    loaded: bool
    row_count: int
    last_updated: Optional[str] = None
    load_error: Optional[str] = None


class MetaOptionsResponse(BaseModel):
    group: List[str]
    subgroup: List[str]
    source: List[str]
