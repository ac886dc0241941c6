"""Submission schemas: stored documents and API responses."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Struggle(str, Enum):
    """Struggle tags a lead can pick (1 to 3)."""

    BRANDING_SCATTERED = "branding-scattered"
    STORY_ARTICULATION = "story-articulation"
    WRONG_AUDIENCE = "wrong-audience"
    VISUALS_DONT_FEEL_ME = "visuals-dont-feel-me"
    AUTOMATION_SYSTEMS = "automation-systems"
    PRIORITIZATION = "prioritization"
    OVERWHELMED = "overwhelmed"


class CommunicationChannel(str, Enum):
    EMAIL = "email"
    TEXT = "text"
    SLACK = "slack"
    VOICE_NOTE = "voice-note"
    PHONE = "phone"
    CARRIER_PIGEON = "carrier-pigeon"


class FileRef(BaseModel):
    """Reference to a separately uploaded blob."""

    url: str = ""
    fileName: str = ""
    size: Optional[int] = None
    uploadedAt: Optional[str] = None


class Submission(BaseModel):
    """One persisted onboarding form submission.

    Field names are camelCase because they are the public JSON contract
    shared with the form, the admin dashboard and the CSV export.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: str

    # Required
    name: str
    email: str
    brandName: str
    whyNow: str
    successMetrics: str
    struggles: list[str]
    communication: str

    # Optional
    phone: Optional[str] = None
    industry: Optional[str] = None
    onlinePresence: Optional[str] = None
    brandVoice: Optional[str] = None
    brandTone: Optional[str] = None
    avoidances: Optional[str] = None
    aestheticReferences: Optional[str] = None
    offering: Optional[str] = None
    valueProvision: Optional[str] = None
    dreamAudience: Optional[str] = None
    feedback: Optional[str] = None
    additionalInfo: Optional[str] = None
    otherStruggle: Optional[str] = None

    files: Optional[list[FileRef]] = None

    def to_document(self) -> dict:
        """Dict written to the blob store (absent optionals omitted)."""
        return self.model_dump(exclude_none=True)


class StoredSubmission(BaseModel):
    """Submission document as read back, with blob metadata.

    Documents are parsed leniently: whatever the stored JSON holds is kept,
    so older documents with missing fields still show up in the dashboard.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    timestamp: Optional[str] = None
    blobUrl: Optional[str] = None
    blobSize: Optional[int] = None
    blobUploadedAt: Optional[str] = None


class SubmitResponse(BaseModel):
    success: bool = True
    message: str = "Form submitted successfully"
    submissionId: str
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
    message: str
    errors: Optional[dict[str, str]] = None
    retryAfter: Optional[int] = None
