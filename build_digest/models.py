from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class BuildStatus(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PARTIALLY_SUCCEEDED = "partiallySucceeded"
    STOPPED = "canceled"
    UNKNOWN = "unknown"

    @classmethod
    def from_result(cls, value: Optional[str]) -> "BuildStatus":
        for member in cls:
            if member.value == value:
                return member
        return cls.UNKNOWN


class BuildReason(Enum):
    SCHEDULE = "schedule"
    SCHEDULE_FORCED = "scheduleForced"
    MANUAL = "manual"
    OTHER = "other"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "BuildReason":
        for member in cls:
            if member.value == value:
                return member
        return cls.OTHER

    @property
    def is_scheduled(self) -> bool:
        return self in (BuildReason.SCHEDULE, BuildReason.SCHEDULE_FORCED)


class StatusIcon(Enum):
    """Inline status images; the value is the attachment content ID."""

    SUCCESS = "picOK"
    FAILED = "picNotOK"
    PARTIALLY = "picPartially"
    STOPPED = "picStopped"
    UNKNOWN = "picUnknown"

    @property
    def content_id(self) -> str:
        return self.value

    @property
    def placeholder(self) -> str:
        return f"cid:{self.value}"


@dataclass
class BuildRecord:
    id: int
    definition_name: str
    status: BuildStatus
    reason: BuildReason
    start_time: Optional[datetime]
    finish_time: Optional[datetime]
    uri: str = ""
    web_url: Optional[str] = None


@dataclass(frozen=True)
class InlineImage:
    content_id: str
    filename: str
    content: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True)
class DigestMessage:
    subject: str
    html_body: str
    from_email: str
    to_emails: List[str]
    inline_images: List[InlineImage] = field(default_factory=list)
