"""
Pydantic schemas for the engine's boundary contracts.
"""
import re
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

_TAG_PATTERN = re.compile(r"<[^>]+>")


class DocumentSummary(BaseModel):
    """Document metadata supplied by the caller for a verification."""
    id: str = Field(..., min_length=1, max_length=255)
    title: str = Field(default="", max_length=255)
    public_slug: Optional[str] = None
    content: str = ""
    word_count: Optional[int] = Field(default=None, ge=0)
    author: Optional[str] = None
    published_at: Optional[datetime] = None

    @field_validator("content", mode="before")
    @classmethod
    def content_not_none(cls, v):
        return "" if v is None else v

    @property
    def character_count(self) -> int:
        return len(self.content)

    @property
    def effective_word_count(self) -> int:
        if self.word_count is not None:
            return self.word_count
        text = _TAG_PATTERN.sub(" ", self.content).strip()
        return len(text.split()) if text else 0


class IngestRequest(BaseModel):
    """Raw keystroke batch for one document. Records are validated later, one by one."""
    document_id: str = Field(..., min_length=1, max_length=255)
    events: List[Any] = Field(default_factory=list)
    session_start: Optional[float] = None


class IngestResponse(BaseModel):
    """Counts from one ingestion call."""
    appended: int = Field(..., ge=0)
    skipped_duplicate: int = Field(..., ge=0)
    rejected: int = Field(..., ge=0)


class SegmentRequest(BaseModel):
    """Options for the writing-session timeline."""
    max_commits: int = Field(default=50, ge=1, le=1000)
    pause_threshold_ms: float = Field(default=500.0, gt=0)
    width: float = Field(default=800.0, gt=0)
    height: float = Field(default=200.0, gt=0)
    enrich_sparse: bool = True


class Position(BaseModel):
    x: float
    y: float


class CommitModel(BaseModel):
    id: str
    timestamp: float
    type: str
    keystrokes: int
    duration: float
    position: Position
    intensity: float


class BranchModel(BaseModel):
    id: str
    from_commit: str
    to_commit: str
    type: str
    intensity: float


class SegmentResponse(BaseModel):
    commits: List[CommitModel]
    branches: List[BranchModel]


class CertificateVerification(BaseModel):
    status: str
    confidence_score: int
    keystroke_count: int
    verification_date: str


class CertificateModel(BaseModel):
    """Verification certificate as returned to callers."""
    certificate_id: str
    document: dict
    verification: CertificateVerification
    integrity_markers: dict
    issuer: str
