from __future__ import annotations

from taskproof.core.http.client import request_with_retry


class OpenAICompatClient:
    def __init__(self, url: str, model: str, api_key: str | None = None, timeout_s: float = 45.0) -> None:
        self.url = url
        self.model = model
        self.api_key = api_key
        self.timeout_s = timeout_s

    def chat_completion(
        self,
        system: str,
        user: str,
        temperature: float,
        max_tokens: int,
        response_format: dict | None = None,
        timeout_s: float | None = None,
    ) -> str:
        payload: dict[str, object] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format is not None:
            payload["response_format"] = response_format

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        response = request_with_retry(
            "POST",
            self.url,
            headers=headers,
            json=payload,
            timeout_override=timeout_s if timeout_s is not None else self.timeout_s,
            retries=0,
        )
        data = response.json()
        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return str(message.get("content") or "")
