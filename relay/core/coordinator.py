"""Turn coordination for the polling protocol.

A new turn runs as its own task and reports into the ProgressStore. The
request that started it is answered once: with the first fragment, or with
an error if the turn failed (or hit the deadline) before any fragment. Later
fragments and the final answer are picked up by polling the turn id.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Dict, Optional, Set

from relay.core.deadline import with_deadline
from relay.core.store import ProgressStore
from relay.errors import DeadlineExceeded
from relay.records import AnswerRecord
from relay.upstream.base import ChatBackend


logger = logging.getLogger("relay.coordinator")

Payload = Dict[str, Any]


class OneShot:
    """A value that can be set once; later `fire` calls are ignored."""

    def __init__(self) -> None:
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def fired(self) -> bool:
        return self._future.done()

    def fire(self, value: Any) -> bool:
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    async def wait(self) -> Any:
        return await asyncio.shield(self._future)


class _Turn:
    def __init__(self, credential: str) -> None:
        self.credential = credential
        self.response = OneShot()
        self.last_fragment: Optional[AnswerRecord] = None
        self.settled = False


def answer_payload(record: AnswerRecord, credential: str) -> Payload:
    return {"resp": record.to_payload(), "cookie": credential}


def error_payload(error: Any) -> Payload:
    return {"err": str(error)}


class TurnCoordinator:
    def __init__(
        self,
        backend: ChatBackend,
        store: ProgressStore,
        timeout: float = 60.0,
    ) -> None:
        self.backend = backend
        self.store = store
        self.timeout = timeout
        self._tasks: Set[asyncio.Future] = set()

    async def query(self, prompt: str, credential: str) -> Payload:
        record = await self.backend.send_turn(prompt, None, credential=credential)
        return answer_payload(record, credential)

    async def converse(
        self, prompt: str, prior_turn: Optional[Dict[str, Any]], credential: str
    ) -> Payload:
        record = await self.backend.send_turn(prompt, prior_turn, credential=credential)
        return answer_payload(record, credential)

    async def start_or_resume(
        self,
        prompt: Optional[str],
        prior_turn: Optional[Dict[str, Any]],
        credential: str,
    ) -> Payload:
        if prior_turn is not None and "id" in prior_turn:
            return self.poll(str(prior_turn["id"]), credential)
        return await self.start(prompt or "", prior_turn, credential)

    def poll(self, turn_id: str, credential: str) -> Payload:
        record = self.store.take_if_done(turn_id)
        if record is None:
            logger.info("Poll miss: qid=%s", turn_id)
            return error_payload(f"qid {turn_id} not found")
        if record.done:
            logger.info("Delivered final record for %s", turn_id)
        return answer_payload(record, credential)

    async def start(
        self, prompt: str, options: Optional[Dict[str, Any]], credential: str
    ) -> Payload:
        turn = _Turn(credential)
        upstream = asyncio.ensure_future(
            self.backend.send_turn(
                prompt,
                options,
                partial(self._on_progress, turn),
                credential=credential,
            )
        )
        watcher = asyncio.ensure_future(self._watch(turn, upstream))
        # Both tasks outlive the request; keep them referenced until they finish.
        for task in (upstream, watcher):
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return await turn.response.wait()

    def _on_progress(self, turn: _Turn, fragment: AnswerRecord) -> None:
        if turn.settled:
            # A settled record never goes back to streaming.
            logger.debug("Ignoring fragment for settled turn %s", fragment.id)
            return
        fragment.done = False
        turn.last_fragment = fragment
        self.store.put(fragment.id, fragment)
        if turn.response.fire(answer_payload(fragment, turn.credential)):
            logger.info("First fragment for %s released to caller", fragment.id)

    async def _watch(self, turn: _Turn, upstream: asyncio.Future) -> None:
        try:
            final = await with_deadline(upstream, self.timeout)
        except DeadlineExceeded as exc:
            logger.warning("Turn %s: %s", self._turn_label(turn), exc)
            self._fail(turn, exc)
            # The upstream call keeps going; keep its answer for a later poll.
            upstream.add_done_callback(partial(self._settle_late, turn))
        except Exception as exc:
            logger.error("Turn %s failed: %s", self._turn_label(turn), exc)
            self._fail(turn, exc)
        else:
            self._complete(turn, final)

    def _complete(self, turn: _Turn, final: AnswerRecord) -> None:
        final.done = True
        if turn.response.fire(answer_payload(final, turn.credential)):
            # Settled without fragments: the caller got the final record directly.
            turn.settled = True
            logger.info("Turn %s settled before any fragment", final.id)
            return
        if turn.settled and self.store.get(final.id) is None:
            # The timed-out record was already delivered; a second delivery is not allowed.
            logger.info("Dropping late answer for %s: turn already delivered", final.id)
            return
        self._settle(turn, final)
        logger.info("Done with %s successfully (%s chars)", final.id, len(final.text))

    def _fail(self, turn: _Turn, error: BaseException) -> None:
        if turn.last_fragment is not None and not turn.settled:
            record = turn.last_fragment
            record.done = True
            record.error = str(error)
            self._settle(turn, record)
        turn.response.fire(error_payload(error))

    def _settle(self, turn: _Turn, record: AnswerRecord) -> None:
        turn.settled = True
        self.store.put(record.id, record)

    def _settle_late(self, turn: _Turn, upstream: asyncio.Future) -> None:
        if upstream.cancelled():
            return
        exc = upstream.exception()
        if exc is not None:
            logger.error("Turn %s failed after its deadline: %s", self._turn_label(turn), exc)
            self._fail(turn, exc)
            return
        logger.info("Late answer arrived for %s", self._turn_label(turn))
        self._complete(turn, upstream.result())

    @staticmethod
    def _turn_label(turn: _Turn) -> str:
        return turn.last_fragment.id if turn.last_fragment is not None else "<no id yet>"
