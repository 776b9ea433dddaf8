"""
Gemini Provider
===============

Generative Language REST API over httpx.

    POST {base_url}/models/{model}:generateContent

GUARANTEES:
- HTTP, timeout and network failures become ProviderResponse errors
- Image parts are returned as data URIs
- Blocked prompts are reported as CONTENT_FILTERED
"""

from __future__ import annotations
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from .base import (
    InvocationParams,
    LLMProvider,
    ProviderErrorCode,
    ProviderResponse,
)


DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(LLMProvider):
    """
    Stateless Gemini client. A fresh AsyncClient is opened per call;
    `transport` lets tests substitute an httpx.MockTransport.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    @property
    def provider_id(self) -> str:
        return "gemini"

    async def generate_text(self, prompt: str, params: InvocationParams) -> ProviderResponse:
        payload = self._request_body(prompt, params)
        return await self._invoke(payload, params, self._extract_text)

    async def generate_image(self, prompt: str, params: InvocationParams) -> ProviderResponse:
        # Image models reject responseMimeType
        payload = self._request_body(prompt, params, allow_json=False)
        return await self._invoke(payload, params, self._extract_image)

    # =========================================================================
    # REQUEST
    # =========================================================================

    def _request_body(self, prompt: str, params: InvocationParams, allow_json: bool = True) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}]
        }
        if params.system_instruction:
            body["systemInstruction"] = {"parts": [{"text": params.system_instruction}]}
        generation_config: Dict[str, Any] = {}
        if allow_json and params.json_response:
            generation_config["responseMimeType"] = "application/json"
        if params.temperature is not None:
            generation_config["temperature"] = params.temperature
        if generation_config:
            body["generationConfig"] = generation_config
        return body

    async def _invoke(self, payload: Dict[str, Any], params: InvocationParams, extract) -> ProviderResponse:
        invoked_at = datetime.now(timezone.utc)
        start_time = time.time()

        def failure(code: ProviderErrorCode, message: str) -> ProviderResponse:
            return ProviderResponse(
                success=False,
                error_code=code,
                error_message=message,
                provider_id=self.provider_id,
                model_id=params.model,
                invoked_at=invoked_at,
                latency_ms=(time.time() - start_time) * 1000
            )

        if not self._api_key:
            return failure(ProviderErrorCode.NOT_CONFIGURED, "GEMINI_API_KEY is not set")

        url = f"{self._base_url}/models/{params.model}:generateContent"
        try:
            async with httpx.AsyncClient(timeout=params.timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers={"x-goog-api-key": self._api_key}
                )
        except httpx.TimeoutException:
            return failure(ProviderErrorCode.TIMEOUT, f"Timed out after {params.timeout_seconds}s")
        except httpx.NetworkError as e:
            return failure(ProviderErrorCode.NETWORK_ERROR, str(e))
        except httpx.HTTPError as e:
            return failure(ProviderErrorCode.API_ERROR, str(e))

        if response.status_code == 429:
            return failure(ProviderErrorCode.RATE_LIMITED, response.text)
        if response.status_code >= 400:
            return failure(ProviderErrorCode.API_ERROR, f"HTTP {response.status_code}: {response.text}")

        try:
            data = response.json()
        except ValueError:
            return failure(ProviderErrorCode.INVALID_RESPONSE, "Response body is not JSON")

        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            return failure(ProviderErrorCode.CONTENT_FILTERED, f"Prompt blocked: {block_reason}")

        content = extract(self._parts(data))
        if content is None:
            return failure(ProviderErrorCode.INVALID_RESPONSE, "Response contained no usable parts")

        return ProviderResponse(
            success=True,
            content=content,
            provider_id=self.provider_id,
            model_id=params.model,
            invoked_at=invoked_at,
            latency_ms=(time.time() - start_time) * 1000
        )

    # =========================================================================
    # RESPONSE PARSING
    # =========================================================================

    @staticmethod
    def _parts(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        candidates = data.get("candidates") or []
        if not candidates:
            return []
        return (candidates[0].get("content") or {}).get("parts") or []

    @staticmethod
    def _extract_text(parts: List[Dict[str, Any]]) -> Optional[str]:
        texts = [part["text"] for part in parts if part.get("text") and not part.get("thought")]
        return "".join(texts) if texts else None

    @staticmethod
    def _extract_image(parts: List[Dict[str, Any]]) -> Optional[str]:
        for part in parts:
            inline = part.get("inlineData")
            if inline and inline.get("data"):
                mime_type = inline.get("mimeType", "image/png")
                return f"data:{mime_type};base64,{inline['data']}"
        return None
