from app.db.session import Base
from .analysis import (
    AnalysisSession, AnalysisProgress, SessionStatus, SectionName, ProgressStatus,
    ALL_SECTIONS
)
