from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from relay.credentials import mask
from relay.errors import UpstreamError
from relay.records import AnswerRecord, ChatTurn
from relay.upstream.base import ProgressCallback


logger = logging.getLogger("relay.upstream")

LLMFactory = Callable[[str], BaseChatModel]


def to_lc_messages(history: List[dict], limit: int = 10) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for item in (history or [])[-limit:]:
        role = (item.get("role") or "").lower()
        content = item.get("content") or ""
        if not content:
            continue
        if role in ("user", "human"):
            messages.append(HumanMessage(content=content))
        elif role in ("assistant", "ai", "bot"):
            messages.append(AIMessage(content=content))
        else:
            messages.append(HumanMessage(content=content))
    return messages


def _chunk_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text") or "")
    return "".join(parts)


class GeminiChatBackend:
    """Streams a turn from Gemini, keyed per call by the selected credential.

    Gemini keeps no server-side conversation, so each record carries the
    `history` needed to continue it; clients send the record back as context.
    """

    def __init__(
        self,
        model: str = "gemini-2.0-flash",
        temperature: float = 0.3,
        top_p: float = 0.9,
        system_prompt: Optional[str] = None,
        history_turns: int = 10,
        llm_factory: Optional[LLMFactory] = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.top_p = top_p
        self.system_prompt = system_prompt
        self.history_turns = history_turns
        self._llm_factory = llm_factory or self._build_llm

    def _build_llm(self, credential: str) -> BaseChatModel:
        return ChatGoogleGenerativeAI(
            model=self.model,
            google_api_key=credential,
            temperature=self.temperature,
            top_p=self.top_p,
        )

    async def send_turn(
        self,
        prompt: str,
        context: Optional[Dict[str, Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
        *,
        credential: str,
    ) -> AnswerRecord:
        context = context or {}
        history = [
            ChatTurn.model_validate(turn).model_dump()
            for turn in (context.get("history") or [])
        ]
        messages: List[BaseMessage] = []
        if self.system_prompt:
            messages.append(SystemMessage(content=self.system_prompt))
        messages.extend(to_lc_messages(history, limit=self.history_turns))
        messages.append(HumanMessage(content=prompt))

        turn_id = uuid.uuid4().hex
        logger.info(
            "Upstream turn %s: model=%s credential=%s history_turns=%s",
            turn_id,
            self.model,
            mask(credential),
            len(history),
        )

        text = ""
        try:
            llm = self._llm_factory(credential)
            async for chunk in llm.astream(messages):
                piece = _chunk_text(chunk.content)
                if not piece:
                    continue
                text += piece
                if on_progress is not None:
                    on_progress(AnswerRecord(id=turn_id, text=text, done=False, history=history))
        except Exception as exc:
            raise UpstreamError(f"Gemini request failed: {exc}") from exc

        history = history + [
            {"role": "user", "content": prompt},
            {"role": "assistant", "content": text},
        ]
        return AnswerRecord(id=turn_id, text=text, done=True, history=history)
