from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Protocol

from relay.records import AnswerRecord


ProgressCallback = Callable[[AnswerRecord], None]


class ChatBackend(Protocol):
    """Boundary to the chat provider.

    `send_turn` resolves exactly once with the final record, or raises.
    `on_progress`, when given, may be called any number of times (zero
    included) with partial records that share the final record's id, in the
    order they were produced and always before `send_turn` returns.
    """

    async def send_turn(
        self,
        prompt: str,
        context: Optional[Dict[str, Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
        *,
        credential: str,
    ) -> AnswerRecord:
        ...
