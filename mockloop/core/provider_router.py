"""
Provider Router for MockLoop

Sends a prompt through the prioritized provider chain:
- Providers are tried strictly in chain order
- Within a provider, every non-failed credential is tried once
- The first complete text response wins, with no delay before falling back
- A failed attempt (429/5xx, timeout, payload without text) marks the
  credential failed for the rest of the epoch
- When nothing viable remains, ProviderExhaustedError is raised

Each provider's wire format is normalized to plain text (or an error)
before the router sees it.
"""

import logging
from typing import Any

import httpx

from mockloop.config.settings import Settings, get_settings
from mockloop.core.errors import (
    MalformedResponseError,
    ProviderExhaustedError,
    ProviderTransientError,
)
from mockloop.core.provider_pool import ProviderPool
from mockloop.core.tracing import end_span, get_langfuse, start_span
from mockloop.models.provider import (
    AttemptRecord,
    Credential,
    ProviderChain,
    ProviderConfig,
    RequestShape,
)

logger = logging.getLogger(__name__)

# Keep the model from writing the candidate's side of the conversation.
STOP_SEQUENCES = ["### Candidate", "Candidate:", "User:", "### User"]

GEMINI_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]


def build_chain(settings: Settings | None = None) -> ProviderChain:
    """Build the provider chain in the configured priority order."""
    settings = settings or get_settings()

    known = {
        "openrouter": ProviderConfig(
            provider_id="openrouter",
            endpoint=settings.openrouter_endpoint,
            model=settings.openrouter_model,
            request_shape=RequestShape.OPENAI_CHAT,
            extra_headers={"X-Title": settings.app_name},
        ),
        "groq": ProviderConfig(
            provider_id="groq",
            endpoint=settings.groq_endpoint,
            model=settings.groq_model,
            request_shape=RequestShape.OPENAI_CHAT,
        ),
        "gemini": ProviderConfig(
            provider_id="gemini",
            endpoint=settings.gemini_endpoint,
            model=settings.gemini_model,
            request_shape=RequestShape.GEMINI,
        ),
    }

    providers = []
    for provider_id in settings.provider_order:
        if provider_id not in known:
            logger.warning(f"Unknown provider in PROVIDER_ORDER: {provider_id}")
            continue
        providers.append(known[provider_id])

    return ProviderChain(providers=tuple(providers))


class ProviderRouter:
    """
    Routes prompts across providers and credentials.

    Lifecycle:
        router = ProviderRouter(pool, chain)
        await router.init()
        text = await router.request(prompt)
        router.reset_epoch()   # between sessions
        await router.close()
    """

    def __init__(
        self,
        pool: ProviderPool,
        chain: ProviderChain,
        client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
        langfuse: Any = None,
    ):
        """
        Args:
            pool: Credential pool shared by every request of this router
            chain: Default provider chain
            client: HTTP client to use; created by init() when omitted
            settings: Settings override
            langfuse: Langfuse client; defaults to the shared one
        """
        self.pool = pool
        self.chain = chain
        self.settings = settings or get_settings()
        self.langfuse = langfuse if langfuse is not None else get_langfuse(self.settings)

        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ProviderRouter":
        settings = settings or get_settings()
        return cls(
            pool=ProviderPool.from_settings(settings),
            chain=build_chain(settings),
            settings=settings,
        )

    async def init(self) -> None:
        """Open the HTTP client if one was not injected."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.request_timeout_seconds)
            self._owns_client = True

    async def close(self) -> None:
        """Close the HTTP client if this router created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    def reset_epoch(self) -> int:
        """Re-enable every credential. Call between sessions, never mid-session."""
        return self.pool.reset_epoch()

    # =========================================================================
    # ROUTING
    # =========================================================================

    async def request(
        self,
        prompt: str,
        chain: ProviderChain | None = None,
        *,
        system: str | None = None,
        history: list[dict[str, str]] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """
        Get one complete text response for a prompt.

        Args:
            prompt: User prompt
            chain: Provider chain override; defaults to the router's chain
            system: Optional system instruction
            history: Prior messages as {"role": "user"|"assistant", "content": ...}
            max_tokens: Output token limit override
            temperature: Sampling temperature override

        Returns:
            Model response text

        Raises:
            ProviderExhaustedError: If every credential of every provider failed
        """
        chain = chain or self.chain
        await self.init()

        messages = self._build_messages(prompt, system, history)
        max_tokens = max_tokens or self.settings.max_tokens
        temperature = self.settings.temperature if temperature is None else temperature

        attempts: list[AttemptRecord] = []
        span = start_span(
            self.langfuse,
            "provider_request",
            metadata={"providers": chain.provider_ids, "epoch": self.pool.epoch},
        )

        for provider in chain.providers:
            candidates = self.pool.viable(provider.provider_id)
            if not candidates:
                logger.debug(f"Skipping {provider.provider_id}: no viable credentials")
                continue

            for credential in candidates:
                if credential.failed:
                    continue
                try:
                    text = await self._attempt(
                        provider, credential, messages, max_tokens, temperature
                    )
                except ProviderTransientError as e:
                    attempts.append(AttemptRecord(
                        provider_id=provider.provider_id,
                        credential=credential.label,
                        ok=False,
                        error=str(e),
                    ))
                    logger.warning(f"{credential.label} failed: {e}")
                    self.pool.mark_failed(credential)
                    continue

                attempts.append(AttemptRecord(
                    provider_id=provider.provider_id,
                    credential=credential.label,
                    ok=True,
                ))
                logger.info(
                    f"Response from {credential.label} ({provider.model}) "
                    f"after {len(attempts)} attempt(s)"
                )
                end_span(span, output={
                    "provider": provider.provider_id,
                    "attempts": len(attempts),
                })
                return text

        end_span(span, output={"exhausted": True, "attempts": len(attempts)})
        logger.error(f"All providers exhausted after {len(attempts)} attempt(s)")
        raise ProviderExhaustedError(
            f"All providers exhausted ({len(attempts)} attempts)",
            attempts=attempts,
        )

    async def _attempt(
        self,
        provider: ProviderConfig,
        credential: Credential,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> str:
        """One network call against one credential. Raises ProviderTransientError."""
        if provider.request_shape == RequestShape.GEMINI:
            url = provider.endpoint.format(model=provider.model)
            params = {"key": credential.secret}
            headers = {"Content-Type": "application/json"}
            payload = self._gemini_payload(messages, max_tokens, temperature)
        else:
            url = provider.endpoint
            params = None
            headers = {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {credential.secret}",
                **provider.extra_headers,
            }
            payload = {
                "model": provider.model,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "stop": STOP_SEQUENCES,
            }

        try:
            response = await self._client.post(url, params=params, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            raise ProviderTransientError(f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderTransientError(f"transport error: {e}") from e

        if response.status_code >= 400:
            raise ProviderTransientError(
                f"HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError("response is not JSON") from e

        if provider.request_shape == RequestShape.GEMINI:
            return self._extract_gemini(data)
        return self._extract_openai(data)

    # =========================================================================
    # WIRE FORMATS
    # =========================================================================

    def _build_messages(
        self,
        prompt: str,
        system: str | None,
        history: list[dict[str, str]] | None,
    ) -> list[dict[str, str]]:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend(history or [])
        messages.append({"role": "user", "content": prompt})
        return messages

    def _gemini_payload(
        self,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        contents = [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
            if m["role"] != "system"
        ]

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
                "stopSequences": STOP_SEQUENCES,
            },
            "safetySettings": GEMINI_SAFETY_SETTINGS,
        }
        if system_parts:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}
        return payload

    def _extract_openai(self, data: Any) -> str:
        """Extract text content from a chat-completions response."""
        if not isinstance(data, dict):
            raise MalformedResponseError("unexpected payload type")
        if data.get("error"):
            raise MalformedResponseError(f"provider error object: {data['error']}")

        choices = data.get("choices") or []
        if not choices:
            raise MalformedResponseError("no choices returned")

        content = (choices[0].get("message") or {}).get("content")

        # Handle case where content is a list (multi-part response)
        if isinstance(content, list):
            text_parts = []
            for part in content:
                if isinstance(part, str):
                    text_parts.append(part)
                elif isinstance(part, dict) and "text" in part:
                    text_parts.append(part["text"])
            content = "".join(text_parts)

        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError("empty completion")
        return content

    def _extract_gemini(self, data: Any) -> str:
        """Extract text from candidates[0].content.parts."""
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError("missing candidates[0].content.parts") from e

        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not text.strip():
            raise MalformedResponseError("empty completion")
        return text
