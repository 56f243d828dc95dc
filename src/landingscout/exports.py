"""CSV export of session results and screenshot lookup."""

import csv
import io
import logging
from pathlib import Path
from typing import Optional

from landingscout.config import settings
from landingscout.database import AbstractDatabase
from landingscout.exceptions import (
    NoPageResultsError,
    PageResultNotFoundError,
    SessionNotFoundError,
)

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "URL",
    "Type",
    "Status",
    "Product Count",
    "Scan Time",
    "Error Message",
    "Screenshot URL",
]


def export_filename(session_id: str) -> str:
    return f"session-{session_id}.csv"


def export_session_csv(
    db: AbstractDatabase,
    session_id: str,
    base_url: Optional[str] = None,
) -> str:
    """
    Render a session's page results as CSV, oldest first.

    Args:
        db: Result store
        session_id: Session to export
        base_url: Prefix for screenshot links (defaults to API_BASE_URL)

    Returns:
        CSV text with a header row

    Raises:
        SessionNotFoundError: If the session does not exist
        NoPageResultsError: If the session has no page results
    """
    if db.get_session(session_id) is None:
        raise SessionNotFoundError(session_id)

    results = db.list_page_results(session_id)
    if not results:
        raise NoPageResultsError(session_id)

    base_url = (base_url or settings.api_base_url).rstrip("/")

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for result in results:
        writer.writerow([
            result.url,
            result.page_type or "",
            result.status.value,
            result.product_count or 0,
            result.scan_time.isoformat() if result.scan_time else "",
            result.error_message or "",
            f"{base_url}/{result.screenshot_path}" if result.screenshot_path else "",
        ])

    logger.info(f"Exported {len(results)} page results for session {session_id}")
    return buffer.getvalue()


def resolve_screenshot(
    db: AbstractDatabase,
    page_result_id: str,
    root: Optional[str] = None,
) -> Path:
    """
    Absolute path of a page result's screenshot.

    Raises:
        PageResultNotFoundError: If the result, its screenshot, or the file is
            missing, or the stored path points outside the screenshot root
    """
    result = db.get_page_result(page_result_id)
    if result is None:
        raise PageResultNotFoundError(page_result_id)
    if not result.screenshot_path:
        raise PageResultNotFoundError(page_result_id, "has no screenshot")

    root_path = Path(root or settings.screenshots_dir).resolve()
    target = (root_path / result.screenshot_path).resolve()
    if root_path not in target.parents:
        logger.warning(f"Refusing screenshot path outside {root_path}: {result.screenshot_path}")
        raise PageResultNotFoundError(page_result_id, "has an invalid screenshot path")
    if not target.is_file():
        raise PageResultNotFoundError(page_result_id, "screenshot file is missing")
    return target
