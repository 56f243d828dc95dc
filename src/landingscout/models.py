"""Data models for scouts, crawl sessions and page results."""

import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from landingscout.constants import UNKNOWN_PAGE_TYPE


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class SessionStatus(str, Enum):
    """Lifecycle of a scouting session."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self not in ACTIVE_SESSION_STATUSES

    @property
    def is_cancellable(self) -> bool:
        return self in ACTIVE_SESSION_STATUSES


ACTIVE_SESSION_STATUSES = frozenset({SessionStatus.PENDING, SessionStatus.RUNNING})


class PageResultStatus(str, Enum):
    """Outcome of a single page visit."""
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    TIMEOUT = "TIMEOUT"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class PageTypeRule:
    """How to recognise one page type and where to read its count.

    ``type`` is the key of a registered page processor. Rules are tried in
    the order they appear on the scout; the first match wins.
    """
    type: str
    identifier: str = ""
    count_selector: str = ""
    fallback_product_selectors: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PageTypeRule":
        return cls(
            type=data["type"],
            identifier=data.get("identifier") or "",
            count_selector=data.get("count_selector") or data.get("countSelector") or "",
            fallback_product_selectors=(
                data.get("fallback_product_selectors")
                or data.get("fallbackProductSelectors")
            ),
        )


@dataclass
class Scout:
    """A recurring crawl job definition."""
    name: str
    start_url: str
    schedule: str
    page_types: list[PageTypeRule] = field(default_factory=list)
    active: bool = True
    max_pages_to_visit: Optional[int] = None
    timeout: Optional[int] = None  # Navigation timeout (ms)
    last_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class ScoutingSession:
    """One execution of a scout."""
    scout_id: str
    start_time: datetime = field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    total_pages_scanned: int = 0
    status: SessionStatus = SessionStatus.PENDING
    error_message: Optional[str] = None
    id: str = field(default_factory=new_id)


@dataclass
class PageResult:
    """Outcome of visiting one URL during a session."""
    session_id: str
    url: str
    page_type: str = UNKNOWN_PAGE_TYPE
    product_count: int = 0
    scan_time: datetime = field(default_factory=utcnow)
    processing_time_ms: int = 0
    status: PageResultStatus = PageResultStatus.SUCCESS
    error_message: Optional[str] = None
    screenshot_path: Optional[str] = None
    html_snapshot: Optional[str] = None
    id: str = field(default_factory=new_id)


@dataclass
class ExtractionResult:
    """Partial page result produced by a page processor."""
    page_type: str
    product_count: int = 0
    status: PageResultStatus = PageResultStatus.SUCCESS
    error_message: Optional[str] = None

    def apply_to(self, result: PageResult) -> None:
        """Copy the extracted fields onto a page result."""
        result.page_type = self.page_type
        result.product_count = self.product_count
        result.status = self.status
        result.error_message = self.error_message
