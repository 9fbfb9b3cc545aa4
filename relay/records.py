from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatTurn(BaseModel):
    role: str = Field(..., description="'user' or 'assistant'")
    content: str


class AnswerRecord(BaseModel):
    """Latest known state of one turn.

    Unknown fields sent back by clients (or produced by a provider) are kept,
    so a record can travel client -> relay -> provider untouched.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(None, description="Upstream-assigned turn id")
    text: str = ""
    done: bool = False
    error: Optional[str] = None
    history: List[ChatTurn] = Field(default_factory=list)
    detail: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
