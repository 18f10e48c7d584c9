from .analysis import (
    AnalyzeRequest, CompetitorDescriptor, EnhanceRequest, EnhanceResponse,
    SessionRead, ProgressEntryRead, SessionProgressResponse
)
