"""Scout management: CRUD, schedule validation and run bookkeeping."""

import logging
from dataclasses import replace
from typing import Iterable, Optional

from landingscout.database import AbstractDatabase
from landingscout.exceptions import ScoutNotFoundError
from landingscout.models import PageTypeRule, Scout, utcnow
from landingscout.schedule import next_run_time, validate_schedule

logger = logging.getLogger(__name__)

# Fields callers may change through update()
UPDATABLE_FIELDS = frozenset({
    "name",
    "start_url",
    "schedule",
    "page_types",
    "active",
    "max_pages_to_visit",
    "timeout",
})


def _coerce_rules(page_types: Iterable) -> list[PageTypeRule]:
    return [
        rule if isinstance(rule, PageTypeRule) else PageTypeRule.from_dict(rule)
        for rule in page_types
    ]


class ScoutService:
    """Scout CRUD on top of the store."""

    def __init__(self, db: AbstractDatabase):
        self.db = db

    def create(
        self,
        name: str,
        start_url: str,
        schedule: str,
        page_types: Iterable = (),
        active: bool = True,
        max_pages_to_visit: Optional[int] = None,
        timeout: Optional[int] = None,
    ) -> Scout:
        """
        Create a scout and compute its first run time.

        Raises:
            InvalidScheduleError: If the schedule does not parse
        """
        logger.info(f"Creating scout: {name}")
        validate_schedule(schedule)

        scout = Scout(
            name=name,
            start_url=start_url,
            schedule=schedule,
            page_types=_coerce_rules(page_types),
            active=active,
            max_pages_to_visit=max_pages_to_visit,
            timeout=timeout,
        )
        scout.next_run_at = next_run_time(schedule)
        return self.db.save_scout(scout)

    def get(self, scout_id: str) -> Scout:
        scout = self.db.get_scout(scout_id)
        if scout is None:
            raise ScoutNotFoundError(scout_id)
        return scout

    def list_all(self) -> list[Scout]:
        return self.db.list_scouts()

    def list_active(self) -> list[Scout]:
        return self.db.list_scouts(active_only=True)

    def list_due(self, now=None) -> list[Scout]:
        """Active scouts whose next run time has passed."""
        return self.db.list_due_scouts(now or utcnow())

    def update(self, scout_id: str, **changes) -> Scout:
        """
        Apply field changes to a scout.

        A new schedule is validated before anything is written and moves
        ``next_run_at`` to its next fire time.

        Raises:
            ScoutNotFoundError: If the scout does not exist
            InvalidScheduleError: If a new schedule does not parse
            ValueError: If a change names a field that cannot be updated
        """
        logger.info(f"Updating scout {scout_id}")
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update scout fields: {', '.join(sorted(unknown))}")

        scout = self.get(scout_id)

        if "page_types" in changes:
            changes["page_types"] = _coerce_rules(changes["page_types"])

        schedule = changes.get("schedule")
        if schedule:
            validate_schedule(schedule)
            changes["next_run_at"] = next_run_time(schedule)

        updated = replace(scout, **changes, updated_at=utcnow())
        return self.db.save_scout(updated)

    def remove(self, scout_id: str) -> None:
        """Delete a scout together with its sessions and page results."""
        logger.info(f"Removing scout {scout_id}")
        if not self.db.delete_scout(scout_id):
            raise ScoutNotFoundError(scout_id)

    def update_last_run(self, scout_id: str) -> Scout:
        """Stamp ``last_run_at`` with now and advance ``next_run_at``."""
        scout = self.get(scout_id)
        now = utcnow()
        scout.last_run_at = now
        scout.next_run_at = next_run_time(scout.schedule, after=now)
        scout.updated_at = now
        logger.debug(f"Scout {scout_id} next run at {scout.next_run_at.isoformat()}")
        return self.db.save_scout(scout)
