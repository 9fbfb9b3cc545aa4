from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from relay.errors import UpstreamError
from relay.records import AnswerRecord


class ScriptedTurn:
    """Steps for one upstream turn, fed to the backend as the test goes."""

    def __init__(self, turn_id: str) -> None:
        self.turn_id = turn_id
        self.steps: asyncio.Queue = asyncio.Queue()

    def emit(self, text: str) -> "ScriptedTurn":
        self.steps.put_nowait(("progress", text))
        return self

    def finish(self, text: str) -> "ScriptedTurn":
        self.steps.put_nowait(("final", text))
        return self

    def fail(self, message: str) -> "ScriptedTurn":
        self.steps.put_nowait(("error", message))
        return self


class ScriptedBackend:
    def __init__(self) -> None:
        self.pending: List[ScriptedTurn] = []
        self.calls: List[Dict[str, Any]] = []

    def script(self, turn_id: str = "Q1") -> ScriptedTurn:
        turn = ScriptedTurn(turn_id)
        self.pending.append(turn)
        return turn

    async def send_turn(
        self,
        prompt: str,
        context: Optional[Dict[str, Any]] = None,
        on_progress=None,
        *,
        credential: str,
    ) -> AnswerRecord:
        self.calls.append(
            {"prompt": prompt, "context": context, "credential": credential, "streaming": on_progress is not None}
        )
        turn = self.pending.pop(0)
        while True:
            kind, value = await turn.steps.get()
            if kind == "progress":
                if on_progress is not None:
                    on_progress(AnswerRecord(id=turn.turn_id, text=value))
            elif kind == "final":
                return AnswerRecord(id=turn.turn_id, text=value, done=True)
            else:
                raise UpstreamError(value)


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()
