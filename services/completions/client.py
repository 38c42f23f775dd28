from __future__ import annotations

from typing import Optional, Sequence

import httpx

from services.completions.models import ChatCompletion, CompletionRequest
from shared.chat.conversations import ChatMessage
from shared.errors import CompletionError
from shared.logging.logger import get_logger

log = get_logger("completions.client")


class CompletionClient:
    """
    Chat-completion client over a shared httpx.AsyncClient.

    - Bearer token authentication
    - Exactly one attempt per call (no retries)
    - Every transport / status / decode failure becomes CompletionError
    """

    def __init__(
        self,
        *,
        token: str,
        url: str,
        model: str,
        timeout: float = 120.0,
        http: Optional[httpx.AsyncClient] = None,
    ):
        if not token:
            raise RuntimeError("Completion service token is required")

        self.url = url
        self.model = model
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------ #
    # Completion
    # ------------------------------------------------------------------ #

    async def complete(self, messages: Sequence[ChatMessage]) -> ChatCompletion:
        request = CompletionRequest(model=self.model, messages=messages)

        log.debug(
            f"Requesting completion (model={self.model}, messages={len(messages)})"
        )

        try:
            response = await self._http.post(
                self.url,
                headers=self._headers,
                json=request.to_payload(),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CompletionError(
                f"Completion service returned {e.response.status_code}: "
                f"{e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise CompletionError(f"Completion request failed: {e}") from e

        try:
            completion = ChatCompletion.from_payload(response.json())
        except (ValueError, KeyError, TypeError) as e:
            raise CompletionError(f"Malformed completion response: {e}") from e

        log.debug(
            f"Completion {completion.id} usage: "
            f"prompt={completion.usage.prompt_tokens} "
            f"completion={completion.usage.completion_tokens} "
            f"total={completion.usage.total_tokens}"
        )
        return completion
