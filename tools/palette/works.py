"""Per-user work records.

All users' works share one store key holding
``{username: {work_id: WorkData}}``. Reading a user's namespace parses the
whole blob; writing it back re-reads the blob, replaces that user's entry and
writes everything again.
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .config import WORK_DATA_KEY, PaletteConfig
from .latency import DELETE_DELAY, GET_DELAY, LOAD_DELAY, SAVE_DELAY, Delay, default_delay
from .models import WorkData, WorkDraft, format_timestamp
from .storage import KeyValueStore, read_json_map, write_json_map

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase
_SUFFIX_LENGTH = 9

# Sort key for records whose savedAt cannot be parsed: after everything else.
_NO_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)


class WorkDataService:
    """Save, list and delete work records owned by a username.

    Args:
        store: Key-value store holding the works blob.
        work_data_key: Store key for the username -> works mapping.
        delay: Awaited before every operation to simulate network latency.
        clock: Returns the current time as an aware datetime.
        rng: Random source for work id suffixes.
    """

    def __init__(
        self,
        store: KeyValueStore,
        work_data_key: str = WORK_DATA_KEY,
        delay: Delay = asyncio.sleep,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._store = store
        self._key = work_data_key
        self._delay = delay
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: PaletteConfig, store: KeyValueStore, **kwargs) -> "WorkDataService":
        kwargs.setdefault("delay", default_delay(config.simulate_latency))
        return cls(store, work_data_key=config.work_data_key, **kwargs)

    def _get_user_works(self, username: str) -> Dict[str, Any]:
        works = read_json_map(self._store, self._key).get(username)
        return works if isinstance(works, dict) else {}

    def _save_user_works(self, username: str, works: Dict[str, Any]) -> None:
        all_works = read_json_map(self._store, self._key)
        all_works[username] = works
        write_json_map(self._store, self._key, all_works)

    def _new_id(self, now: datetime) -> str:
        millis = int(now.timestamp() * 1000)
        suffix = "".join(self._rng.choice(_BASE36) for _ in range(_SUFFIX_LENGTH))
        return f"work_{millis}_{suffix}"

    async def save_work(self, username: str, draft: Union[WorkDraft, Mapping[str, Any]]) -> WorkData:
        """Store a new work record and return it with its id and savedAt."""
        await self._delay(SAVE_DELAY)
        if not isinstance(draft, WorkDraft):
            draft = WorkDraft.from_dict(draft)

        now = self._clock()
        work = WorkData.from_draft(draft, self._new_id(now), format_timestamp(now))

        works = self._get_user_works(username)
        works[work.id] = work.to_dict()
        self._save_user_works(username, works)
        logger.info(f"Saved work {work.id} ({work.name!r}) for {username}")
        return work

    async def load_user_works(self, username: str) -> list[WorkData]:
        """Return the user's works, most recently saved first."""
        await self._delay(LOAD_DELAY)
        records = []
        for work_id, raw in self._get_user_works(username).items():
            try:
                records.append(WorkData.from_dict(raw))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping unreadable work {work_id} for {username}: {e!r}")

        records.sort(key=lambda w: w.saved_at_datetime or _NO_TIMESTAMP, reverse=True)
        return records

    async def get_work(self, username: str, work_id: str) -> Optional[WorkData]:
        """Return one work record, or None if the user has no such id."""
        await self._delay(GET_DELAY)
        raw = self._get_user_works(username).get(work_id)
        if raw is None:
            return None
        try:
            return WorkData.from_dict(raw)
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Unreadable work {work_id} for {username}: {e!r}")
            return None

    async def delete_work(self, username: str, work_id: str) -> None:
        """Remove a work record. Unknown ids are ignored."""
        await self._delay(DELETE_DELAY)
        works = self._get_user_works(username)
        if works.pop(work_id, None) is None:
            logger.debug(f"Work {work_id} not found for {username}, nothing to delete")
        self._save_user_works(username, works)
