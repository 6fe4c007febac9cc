"""Argument models for agent tools. The model's JSON arguments are validated against these."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

VerificationCategoryLabel = Literal[
    "Government Policy", "Health", "Security", "Financial", "Legal", "Administrative", "Other"
]
ThreatTypeLabel = Literal[
    "Romance Scam",
    "Investment Fraud",
    "Impersonation",
    "Phishing",
    "Mobile Money Fraud",
    "Job Scam",
    "Lottery/Prize Scam",
    "Blackmail/Sextortion",
    "Other",
]
InformationCategory = Literal[
    "HEALTH",
    "EDUCATION",
    "LEGAL",
    "FINANCIAL",
    "ADMINISTRATIVE",
    "SECURITY",
    "EMPLOYMENT",
    "INFRASTRUCTURE",
    "ENVIRONMENT",
    "SOCIAL_SERVICES",
    "GENERAL",
]


class ToolArgs(BaseModel):
    """Strings are stripped before length checks, so a blank claim or topic is rejected."""

    model_config = ConfigDict(str_strip_whitespace=True)


class VerifyInformationArgs(ToolArgs):
    claim: str = Field(..., min_length=1)
    category: VerificationCategoryLabel = "Other"


class UpdateVerificationStatusArgs(ToolArgs):
    verificationId: int
    status: Literal["VERIFIED", "FALSE", "PARTIALLY_TRUE", "UNVERIFIED"]
    confidence: Literal["HIGH", "MEDIUM", "LOW"]
    explanation: str = ""


class ReportCyberThreatArgs(ToolArgs):
    threatType: ThreatTypeLabel
    description: str = Field(..., min_length=1)
    platform: str = Field(..., min_length=1)
    amountLost: float | None = Field(None, ge=0)
    perpetratorContact: str | None = None
    dateOccurred: str | None = None
    isUrgent: bool = False

    @field_validator("isUrgent", mode="before")
    @classmethod
    def _none_is_false(cls, v):
        return False if v is None else v


class CheckThreatPatternsArgs(ToolArgs):
    contactInfo: str = Field(..., min_length=1)


class EscalateInformationRequestArgs(ToolArgs):
    topic: str = Field(..., min_length=1)
    category: InformationCategory
    priority: Literal["NORMAL", "HIGH", "URGENT"] = "NORMAL"
    ministry: str | None = None
    reason: str = ""


class GetOfficialInfoArgs(ToolArgs):
    topic: str = Field(..., min_length=1)
    ministry: str | None = None
