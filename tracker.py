"""In-memory state for the displayed week and the intents that change it.

Every mutation goes to the store and is followed by a full reload of the
current window; nothing is patched locally. Failures are logged and leave the
previously loaded data in place.
"""
import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from starlette.concurrency import run_in_threadpool

from store import StoreError, ValidationError, validate_name
from week import (
    day_label,
    navigate,
    to_iso_date,
    week_dates,
    week_label,
    week_start as _week_start,
)

logger = logging.getLogger(__name__)


class TrackerController:
    def __init__(self, store, user_id: Optional[str], anchor: date, user_email: str = ""):
        self.store = store
        self.user_id = user_id
        self.user_email = user_email
        self.week_start: date = _week_start(anchor)
        self.medications: List[dict] = []
        self.logs: List[dict] = []
        self.loading = False
        self._log_index: Dict[Tuple[str, str], dict] = {}
        self._generation = 0

    # ── Queries ──────────────────────────────────────────────────────────────

    @property
    def week_dates(self) -> List[date]:
        return week_dates(self.week_start)

    def find_log(self, medication_id: str, day: date) -> Optional[dict]:
        return self._log_index.get((medication_id, to_iso_date(day)))

    def is_checked(self, medication_id: str, day: date) -> bool:
        log = self.find_log(medication_id, day)
        return bool(log and log["taken"])

    def snapshot(self) -> dict:
        dates = self.week_dates
        return {
            "user": {"id": self.user_id, "email": self.user_email} if self.user_id else None,
            "week_start": to_iso_date(dates[0]),
            "week_end": to_iso_date(dates[-1]),
            "label": week_label(self.week_start),
            "days": [{"date": to_iso_date(d), "label": day_label(d), "day": d.day} for d in dates],
            "medications": [
                dict(med, checked=[self.is_checked(med["id"], d) for d in dates])
                for med in self.medications
            ],
            "logs": list(self.logs),
            "loading": self.loading,
        }

    # ── Loading ──────────────────────────────────────────────────────────────

    def _set_data(self, medications: List[dict], logs: List[dict]):
        self.medications = medications
        self.logs = logs
        self._log_index = {(log["medication_id"], log["date"]): log for log in logs}

    async def reload(self) -> bool:
        """Fetch medications and logs for the current window.

        Only the newest reload may publish its results: if the window changes
        while a fetch is in flight, the older fetch's data is dropped.
        """
        if self.store is None:
            return False
        self._generation += 1
        generation = self._generation
        target = self.week_start
        dates = week_dates(target)
        self.loading = True
        try:
            medications = await run_in_threadpool(self.store.list_medications)
            logs = await run_in_threadpool(
                self.store.list_logs, to_iso_date(dates[0]), to_iso_date(dates[-1])
            )
        except StoreError:
            logger.exception("Error loading week %s", to_iso_date(target))
            return False
        finally:
            if generation == self._generation:
                self.loading = False
        if generation != self._generation or target != self.week_start:
            logger.debug("Discarding stale results for week %s", to_iso_date(target))
            return False
        self._set_data(medications, logs)
        return True

    async def set_week(self, anchor: date) -> bool:
        self.week_start = _week_start(anchor)
        return await self.reload()

    async def navigate_week(self, direction: int) -> bool:
        return await self.set_week(navigate(self.week_start, direction))

    # ── Mutations ────────────────────────────────────────────────────────────

    async def _mutate(self, op: str, func, *args) -> bool:
        if self.loading:
            logger.info("Ignoring %s while loading", op)
            return False
        # The write counts as loading; reload() clears it on success.
        self.loading = True
        generation = self._generation
        try:
            await run_in_threadpool(func, *args)
        except StoreError:
            logger.exception("Error during %s", op)
            if generation == self._generation:
                self.loading = False
            return False
        await self.reload()
        return True

    async def toggle(self, medication_id: str, day: date) -> bool:
        if not self.user_id or self.store is None:
            return False
        existing = self.find_log(medication_id, day)
        return await self._mutate("toggle", self.store.upsert_toggle, medication_id, day, existing)

    async def add_medication(self, name: str) -> bool:
        if not self.user_id or self.store is None:
            return False
        try:
            cleaned = validate_name(name)
        except ValidationError:
            return False
        return await self._mutate("add medication", self.store.create_medication, cleaned)

    async def rename_medication(self, medication_id: str, name: str) -> bool:
        if self.store is None:
            return False
        try:
            cleaned = validate_name(name)
        except ValidationError:
            return False
        return await self._mutate(
            "rename medication", self.store.rename_medication, medication_id, cleaned
        )

    async def remove_medication(self, medication_id: str, confirmed: bool) -> bool:
        if not confirmed or self.store is None:
            return False
        return await self._mutate("delete medication", self.store.delete_medication, medication_id)
