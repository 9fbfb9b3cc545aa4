"""In-memory progress store.

Single-process only: records live as long as the process does. Every
operation here is synchronous, so on one event loop nothing can interleave
between reading a record and deleting it.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Tuple

from relay.records import AnswerRecord


logger = logging.getLogger("relay.store")


class ProgressStore:
    def __init__(
        self,
        settled_ttl: Optional[float] = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._records: Dict[str, Tuple[AnswerRecord, float]] = {}
        self._settled_ttl = settled_ttl
        self._clock = clock

    def __len__(self) -> int:
        return len(self._records)

    def put(self, turn_id: str, record: AnswerRecord) -> None:
        # Sweep on settlement only, so streaming writes stay O(1).
        if record.done:
            self._purge_expired()
        self._records[turn_id] = (record, self._clock())

    def get(self, turn_id: str) -> Optional[AnswerRecord]:
        entry = self._records.get(turn_id)
        return entry[0] if entry else None

    def take_if_done(self, turn_id: str) -> Optional[AnswerRecord]:
        entry = self._records.get(turn_id)
        if entry is None:
            return None
        record = entry[0]
        if record.done:
            del self._records[turn_id]
        return record

    def _purge_expired(self) -> None:
        # Settled answers that nobody polled for would otherwise stay forever.
        if self._settled_ttl is None:
            return
        cutoff = self._clock() - self._settled_ttl
        expired = [
            turn_id
            for turn_id, (record, stored_at) in self._records.items()
            if record.done and stored_at < cutoff
        ]
        for turn_id in expired:
            del self._records[turn_id]
        if expired:
            logger.info("Dropped %s settled turn(s) never polled: %s", len(expired), expired)
