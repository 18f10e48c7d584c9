from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, JSON, Text, Enum, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
import uuid
from app.db.session import Base


class SessionStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class SectionName(str, enum.Enum):
    CUSTOMER_INSIGHT = "customer_insight"
    CAMPAIGN_TARGETING = "campaign_targeting"
    MEDIA_PLAN = "media_plan"
    COMPETITIVE_ANALYSIS = "competitive_analysis"
    AD_CREATIVE = "ad_creative"


class ProgressStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    ENHANCING = "enhancing"
    COMPLETED = "completed"
    FAILED = "failed"


# Seeding and read order
ALL_SECTIONS = list(SectionName)

TERMINAL_SESSION_STATUSES = {SessionStatus.COMPLETED, SessionStatus.FAILED}


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def _string_enum(enum_cls, length: int):
    # Stored as the lowercase value so readers see "customer_insight", not "CUSTOMER_INSIGHT"
    return Enum(
        enum_cls,
        values_callable=_enum_values,
        native_enum=False,
        length=length,
        validate_strings=True,
    )


class AnalysisSession(Base):
    """One orchestration run for a single landing page URL"""
    __tablename__ = "analysis_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    url = Column(Text, nullable=False)
    status = Column(_string_enum(SessionStatus, 20), nullable=False, default=SessionStatus.IN_PROGRESS)
    error = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True))  # written once, at the terminal transition

    # Relationships
    progress_entries = relationship(
        "AnalysisProgress",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index('idx_analysis_session_status', 'status', 'created_at'),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_SESSION_STATUSES


class AnalysisProgress(Base):
    """Per (session, section) progress ledger row"""
    __tablename__ = "analysis_progress"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        String(36),
        ForeignKey("analysis_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    section_name = Column(_string_enum(SectionName, 32), nullable=False)
    status = Column(_string_enum(ProgressStatus, 20), nullable=False, default=ProgressStatus.PENDING)
    progress_percentage = Column(Integer, nullable=False, default=0)  # 0-100
    data = Column(JSON)  # shape depends on section_name

    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    session = relationship("AnalysisSession", back_populates="progress_entries")

    __table_args__ = (
        UniqueConstraint('session_id', 'section_name', name='uq_analysis_progress_session_section'),
        Index('idx_analysis_progress_status', 'status', 'started_at'),
    )
