from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass

from taskproof.core.http.errors import TaskproofHTTPError, TaskproofHTTPTimeoutError

from .llm_openai_compat import OpenAICompatClient

_OPENAI_URL = "https://api.openai.com/v1/chat/completions"


class LLMUnavailable(RuntimeError):
    pass


class LLMTimeout(LLMUnavailable):
    pass


class LLMOutputError(RuntimeError):
    pass


@dataclass
class LLMConfig:
    provider: str
    model: str
    url: str
    timeout_s: float
    temperature: float
    strict_json: bool
    max_tokens_json: int
    max_tokens_text: int
    attempts: int


def _llm_url(provider: str) -> str:
    configured = os.getenv("TASKPROOF_LLM_URL")
    if configured:
        return configured
    if provider == "openai":
        return _OPENAI_URL
    return "http://127.0.0.1:8001/v1/chat/completions"


class TaskproofLLM:
    def __init__(self) -> None:
        provider = os.getenv("TASKPROOF_LLM_PROVIDER", "off").strip().casefold()
        self.config = LLMConfig(
            provider=provider,
            model=os.getenv("TASKPROOF_LLM_MODEL", "gpt-4o"),
            url=_llm_url(provider),
            timeout_s=float(os.getenv("TASKPROOF_LLM_TIMEOUT_S", "45")),
            temperature=float(os.getenv("TASKPROOF_LLM_TEMPERATURE", "0.2")),
            strict_json=os.getenv("TASKPROOF_LLM_STRICT_JSON", "on").casefold() == "on",
            max_tokens_json=int(os.getenv("TASKPROOF_LLM_MAX_TOKENS_JSON", "1200")),
            max_tokens_text=int(os.getenv("TASKPROOF_LLM_MAX_TOKENS_TEXT", "500")),
            attempts=max(1, int(os.getenv("TASKPROOF_LLM_ATTEMPTS", "2"))),
        )
        self._compat = OpenAICompatClient(
            url=self.config.url,
            model=self.config.model,
            api_key=os.getenv("TASKPROOF_OPENAI_API_KEY") or os.getenv("OPENAI_API_KEY"),
            timeout_s=self.config.timeout_s,
        )
        self.logger = logging.getLogger("taskproof.llm")

    @property
    def enabled(self) -> bool:
        return self.config.provider in {"openai", "http"}

    @staticmethod
    def feature_enabled(name: str) -> bool:
        provider = os.getenv("TASKPROOF_LLM_PROVIDER", "off").casefold()
        default = "on" if provider != "off" else "off"
        return os.getenv(name, default).casefold() == "on"

    def complete_text(
        self,
        system: str,
        user: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        used_tokens = max_tokens or self.config.max_tokens_text
        used_temp = self.config.temperature if temperature is None else temperature
        return self._call(system=system, user=user, max_tokens=used_tokens, temperature=used_temp, mode="text")

    def complete_json(
        self,
        system: str,
        user: str,
        schema_hint: dict | None = None,
        max_tokens: int | None = None,
        attempts: int | None = None,
        timeout_s: float | None = None,
    ) -> dict:
        used_tokens = max_tokens or self.config.max_tokens_json
        strict_instruction = (
            "Return strict JSON only with no markdown fences and no prose."
            if self.config.strict_json
            else "Return JSON."
        )
        schema_block = f"Schema hint: {json.dumps(schema_hint, ensure_ascii=False)}\n" if schema_hint else ""
        raw = self._call(
            system=system,
            user=f"{strict_instruction}\n{schema_block}{user}",
            max_tokens=used_tokens,
            temperature=0.0,
            response_format={"type": "json_object"},
            mode="json",
            attempts=attempts,
            timeout_s=timeout_s,
        )
        parsed = self._parse_json(raw)
        if parsed is None:
            if self.config.strict_json:
                raise LLMOutputError("Could not parse JSON response")
            return {}
        return parsed

    def _call(
        self,
        system: str,
        user: str,
        max_tokens: int,
        temperature: float,
        response_format: dict | None = None,
        mode: str = "text",
        attempts: int | None = None,
        timeout_s: float | None = None,
    ) -> str:
        if not self.enabled:
            raise LLMUnavailable("LLM provider is off")

        start = time.perf_counter()
        used_attempts = max(1, attempts if attempts is not None else self.config.attempts)
        last_error: Exception | None = None
        for _ in range(used_attempts):
            try:
                output = self._compat.chat_completion(
                    system=system,
                    user=user,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    response_format=response_format,
                    timeout_s=timeout_s,
                )
                self._log_call(mode=mode, start=start, ok=True, system=system, user=user)
                return output
            except (TaskproofHTTPError, ValueError) as exc:
                last_error = exc
                continue

        self._log_call(mode=mode, start=start, ok=False, system=system, user=user)
        if isinstance(last_error, TaskproofHTTPTimeoutError):
            raise LLMTimeout(f"LLM request timed out: {last_error}")
        raise LLMUnavailable(f"LLM request failed: {last_error}")

    def _log_call(self, mode: str, start: float, ok: bool, system: str, user: str) -> None:
        self.logger.info(
            "llm_call",
            extra={
                "extra_fields": {
                    "provider": self.config.provider,
                    "model": self.config.model,
                    "mode": mode,
                    "duration_ms": int((time.perf_counter() - start) * 1000),
                    "ok": ok,
                    "system_len": len(system),
                    "user_len": len(user),
                }
            },
        )

    def _parse_json(self, raw: str) -> dict | None:
        cleaned = raw.strip()
        if cleaned.startswith("```"):
            cleaned = cleaned.strip("`")
            if cleaned.startswith("json"):
                cleaned = cleaned[4:].strip()
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end == -1 or end < start:
            return None
        snippet = cleaned[start : end + 1]
        try:
            parsed = json.loads(snippet)
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None
