"""Ollama client for the two classification stages.

Uses Ollama's native /api/generate endpoint, non-streaming. Images travel
as base64 strings in the `images` field. A single call can take minutes for
a large page image on a small GPU, hence the long read timeout.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Any

import httpx

from scan_organizer.config import OllamaSettings, settings
from scan_organizer.events import emit
from scan_organizer.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)


class OllamaError(Exception):
    """Raised when the inference service is unreachable or returns an unusable reply."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OllamaClient:
    """Async client for Ollama's /api/generate and /api/tags endpoints."""

    def __init__(
        self,
        config: OllamaSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or settings.ollama
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=httpx.Timeout(float(self._config.timeout), connect=float(self._config.connect_timeout)),
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._config.base_url

    async def generate(
        self,
        model: str,
        prompt: str,
        *,
        images: list[str] | None = None,
        temperature: float,
        num_predict: int,
        top_p: float | None = None,
    ) -> str:
        """Run one non-streaming generate call.

        Args:
            model: Ollama model name.
            prompt: Fully rendered prompt.
            images: Base64-encoded images for multimodal models.
            temperature: Sampling temperature.
            num_predict: Output token cap.
            top_p: Nucleus sampling cutoff, omitted when None.

        Returns:
            The `response` field of the reply.

        Raises:
            OllamaError: Connection failure, timeout, non-200 status,
                non-JSON body or missing `response` field.
        """
        options: dict[str, Any] = {"temperature": temperature, "num_predict": num_predict}
        if top_p is not None:
            options["top_p"] = top_p

        payload: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }
        if images:
            payload["images"] = images

        prompt_hash = hashlib.md5(prompt.encode()).hexdigest()[:8]
        await emit(SystemEvent(
            event_type=EventType.LLM_REQUEST,
            data={"model": model, "prompt_hash": prompt_hash, "images": len(images or [])},
            source_module="llm.client",
        ))
        logger.debug("Generate request: model=%s prompt=%.200s", model, prompt)

        start = time.monotonic()
        try:
            response = await self._client.post("/api/generate", json=payload)
        except httpx.TimeoutException as exc:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            await self._emit_error(model, "timeout", latency_ms=elapsed_ms)
            logger.error("Ollama timeout after %dms for model %s", elapsed_ms, model)
            raise OllamaError(f"Request to {model} timed out after {elapsed_ms} ms") from exc
        except httpx.HTTPError as exc:
            await self._emit_error(model, str(exc))
            logger.error("Ollama unreachable at %s: %s", self.base_url, exc)
            raise OllamaError(f"Cannot reach Ollama at {self.base_url}: {exc}") from exc

        elapsed_ms = int((time.monotonic() - start) * 1000)

        if response.status_code != 200:
            await self._emit_error(model, f"HTTP {response.status_code}", latency_ms=elapsed_ms)
            logger.error("Ollama returned HTTP %d for model %s: %.200s", response.status_code, model, response.text)
            raise OllamaError(
                f"Ollama returned HTTP {response.status_code} for {model}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            await self._emit_error(model, "invalid json", latency_ms=elapsed_ms)
            raise OllamaError("Ollama reply is not JSON", status_code=response.status_code) from exc

        content = data.get("response") if isinstance(data, dict) else None
        if not isinstance(content, str):
            await self._emit_error(model, "missing response field", latency_ms=elapsed_ms)
            raise OllamaError("Ollama reply has no 'response' field", status_code=response.status_code)

        completion_tokens = data.get("eval_count", 0)
        await emit(SystemEvent(
            event_type=EventType.LLM_RESPONSE,
            data={
                "model": model,
                "latency_ms": elapsed_ms,
                "prompt_tokens": data.get("prompt_eval_count", 0),
                "completion_tokens": completion_tokens,
            },
            source_module="llm.client",
        ))
        logger.info("LLM response: model=%s latency=%dms tokens=%d", model, elapsed_ms, completion_tokens)
        return content

    async def list_models(self) -> list[str]:
        """Names of the models installed in Ollama (GET /api/tags)."""
        try:
            response = await self._client.get("/api/tags", timeout=float(self._config.connect_timeout))
        except httpx.HTTPError as exc:
            raise OllamaError(f"Cannot reach Ollama at {self.base_url}: {exc}") from exc

        if response.status_code != 200:
            raise OllamaError(f"Ollama returned HTTP {response.status_code}", status_code=response.status_code)

        try:
            models = response.json().get("models", [])
        except ValueError as exc:
            raise OllamaError("Ollama reply is not JSON", status_code=response.status_code) from exc
        return [m["name"] for m in models if isinstance(m, dict) and "name" in m]

    async def _emit_error(self, model: str, error: str, **extra: Any) -> None:
        await emit(SystemEvent(
            event_type=EventType.LLM_ERROR,
            data={"model": model, "error": error, **extra},
            source_module="llm.client",
        ))

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
