from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from relay.errors import RelayError


logger = logging.getLogger("relay.client")


class RelayClientError(RelayError):
    """The relay answered with an `err` body."""


def next_context(record: Dict[str, Any]) -> Dict[str, Any]:
    """Context for the next question in the same conversation.

    Dropping `id` makes the relay start a new turn instead of polling.
    """
    return {k: v for k, v in record.items() if k not in ("id", "done", "error")}


def render_answer(record: Dict[str, Any]) -> str:
    text = record.get("text") or ""
    detail = record.get("detail") or {}

    attributions = detail.get("sourceAttributions") or []
    if attributions:
        lines = [
            f"{i}: [{item.get('providerDisplayName')}]({item.get('seeMoreUrl')})"
            for i, item in enumerate(attributions, start=1)
        ]
        text += "\n\nLearn more:\n" + "\n".join(lines)

    suggestions = detail.get("suggestedResponses") or []
    if suggestions:
        lines = [f"_{i}: {item.get('text')}_" for i, item in enumerate(suggestions, start=1)]
        text += "\n\n_Suggested responses:_\n" + "\n".join(lines)
    return text


class RelayClient:
    """Async client for the relay endpoints, including the polling protocol."""

    def __init__(
        self,
        base_url: str,
        cookie: Optional[str] = None,
        poll_interval: float = 2.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cookie = cookie
        self.poll_interval = poll_interval
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if self.cookie:
            body["cookie"] = self.cookie
        try:
            response = await self._client.post(path, json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise RelayClientError(f"Relay call to {path} failed: {exc}") from exc
        if "err" in data:
            raise RelayClientError(str(data["err"]))
        # Stick to the credential the relay picked so the session stays pinned.
        self.cookie = data.get("cookie") or self.cookie
        return data["resp"]

    async def query(self, prompt: str) -> Dict[str, Any]:
        return await self._post("/newbing/query", {"prompt": prompt})

    async def converse(self, prompt: str, last_resp: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post("/newbing/convo", {"prompt": prompt, "last_resp": last_resp})

    async def follow(
        self, prompt: str, last_resp: Optional[Dict[str, Any]] = None
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield records for one turn until the settled one."""
        body: Dict[str, Any] = {"prompt": prompt, "last_resp": next_context(last_resp or {})}
        record = await self._post("/newbing/onprogress", body)
        yield record
        while not record.get("done"):
            await asyncio.sleep(self.poll_interval)
            logger.debug("Polling %s", record.get("id"))
            record = await self._post("/newbing/onprogress", {"prompt": prompt, "last_resp": record})
            yield record
