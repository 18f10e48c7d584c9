from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List, Dict, Any

from app.models.analysis import SessionStatus, SectionName, ProgressStatus


class AnalyzeRequest(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def url_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("url must not be empty")
        return v


class CompetitorDescriptor(BaseModel):
    domain: str
    name: Optional[str] = None
    category: Optional[str] = None

    class Config:
        extra = "allow"


class EnhanceRequest(BaseModel):
    sessionId: str
    competitors: List[CompetitorDescriptor]


class EnhanceResponse(BaseModel):
    success: bool
    enrichedCount: int


class SessionRead(BaseModel):
    id: str
    url: str
    status: SessionStatus
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProgressEntryRead(BaseModel):
    session_id: str
    section_name: SectionName
    status: ProgressStatus
    progress_percentage: int
    data: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionProgressResponse(BaseModel):
    session: SessionRead
    sections: List[ProgressEntryRead] = Field(default_factory=list)
