"""
AICAMPUS Backend - LLM Provider Abstraction.
Every LLM call goes through this module. Never call Groq or Gemini directly.
Groq serves the OpenAI-compatible chat endpoints, Gemini the UNS navigator
and the event recommender.
"""

import os

import httpx

from aicampus.errors import UpstreamError


def _timeout() -> float:
    return float(os.getenv("LLM_TIMEOUT_SEC", "60"))


class LLMProvider:
    """Base class for LLM providers."""

    api_key = ""

    async def complete(self, messages: list[dict], temperature: float = 0.7,
                       max_tokens: int = 1000, top_p: float | None = None) -> str | None:
        """
        Run one completion over OpenAI-style messages
        ([{role: system|user|assistant, content}]).
        Returns the top completion text, or None when the provider had nothing.
        """
        raise NotImplementedError

    async def health_check(self) -> bool:
        raise NotImplementedError

    @property
    def name(self) -> str:
        raise NotImplementedError

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def close(self) -> None:
        pass


class GroqProvider(LLMProvider):
    """Groq cloud LLM over its OpenAI-compatible API."""

    def __init__(self, api_key: str | None = None):
        self.base_url = os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")
        self.api_key = api_key if api_key is not None else os.getenv("GROQ_API_KEY", "")
        self.model = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
        self.client = httpx.AsyncClient(timeout=_timeout())

    @property
    def name(self) -> str:
        return "groq"

    async def complete(self, messages: list[dict], temperature: float = 0.7,
                       max_tokens: int = 1000, top_p: float | None = None) -> str | None:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if top_p is not None:
            payload["top_p"] = top_p
        try:
            resp = await self.client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=headers,
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(_describe_status_error("Groq", e.response)) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Groq request failed: {type(e).__name__}: {e}") from e

        data = resp.json()
        choices = data.get("choices") or []
        if not choices:
            return None
        return (choices[0].get("message") or {}).get("content") or None

    async def health_check(self) -> bool:
        if not self.configured:
            return False
        try:
            headers = {"Authorization": f"Bearer {self.api_key}"}
            resp = await self.client.get(f"{self.base_url}/models", headers=headers)
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        await self.client.aclose()


class GeminiProvider(LLMProvider):
    """Google Gemini over the Generative Language REST API."""

    def __init__(self, api_key: str | None = None):
        self.base_url = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
        self.api_key = api_key if api_key is not None else os.getenv("GEMINI_API_KEY", "")
        self.model = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
        self.client = httpx.AsyncClient(timeout=_timeout())

    @property
    def name(self) -> str:
        return "gemini"

    async def complete(self, messages: list[dict], temperature: float = 0.7,
                       max_tokens: int = 1000, top_p: float | None = None) -> str | None:
        payload = to_gemini_payload(messages)
        generation_config = {"temperature": temperature, "maxOutputTokens": max_tokens}
        if top_p is not None:
            generation_config["topP"] = top_p
        payload["generationConfig"] = generation_config

        try:
            resp = await self.client.post(
                f"{self.base_url}/models/{self.model}:generateContent",
                params={"key": self.api_key},
                json=payload,
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(_describe_status_error("Gemini", e.response)) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Gemini request failed: {type(e).__name__}: {e}") from e

        data = resp.json()
        candidates = data.get("candidates") or []
        if not candidates:
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        return text or None

    async def health_check(self) -> bool:
        if not self.configured:
            return False
        try:
            resp = await self.client.get(f"{self.base_url}/models", params={"key": self.api_key})
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        await self.client.aclose()


def to_gemini_payload(messages: list[dict]) -> dict:
    """
    OpenAI-style messages -> Gemini contents.
    System messages become systemInstruction, assistant turns become 'model',
    and the conversation must open with a user turn.
    """
    system_parts = []
    contents = []
    for msg in messages:
        role = msg.get("role")
        text = msg.get("content") or ""
        if role == "system":
            system_parts.append({"text": text})
            continue
        contents.append({
            "role": "user" if role == "user" else "model",
            "parts": [{"text": text}],
        })

    while contents and contents[0]["role"] == "model":
        contents.pop(0)

    payload = {"contents": contents}
    if system_parts:
        payload["systemInstruction"] = {"parts": system_parts}
    return payload


def _describe_status_error(provider: str, response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    detail = None
    if isinstance(body, dict):
        error = body.get("error")
        detail = error.get("message") if isinstance(error, dict) else error
    detail = detail or response.text[:200] or "no details"
    return f"{provider} API error {response.status_code}: {detail}"


def create_llm_providers() -> dict[str, LLMProvider]:
    """Factory: one instance of each provider, keyed by name."""
    return {"groq": GroqProvider(), "gemini": GeminiProvider()}
