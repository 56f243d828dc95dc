"""LandingScout - scheduled crawls of e-commerce landing pages."""

__version__ = "0.1.0"

from landingscout.models import (
    PageResult,
    PageResultStatus,
    PageTypeRule,
    Scout,
    ScoutingSession,
    SessionStatus,
)
from landingscout.exceptions import (
    LandingScoutError,
    NoPageResultsError,
    NotFoundError,
    PageResultNotFoundError,
    ScoutNotFoundError,
    SessionNotCancellableError,
    SessionNotFoundError,
    InvalidScheduleError,
    UnknownPageTypeError,
)
from landingscout.config import settings
from landingscout.database import get_db_client

# Crawl engine
from landingscout.infrastructure import BrowserManager
from landingscout.processors import ProcessorRegistry, build_default_registry
from landingscout.scout_service import ScoutService
from landingscout.session_engine import CrawlSessionEngine
