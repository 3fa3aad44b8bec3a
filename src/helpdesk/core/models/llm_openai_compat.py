from __future__ import annotations

from typing import Any

from helpdesk.core.http import send


class OpenAICompatClient:
    def __init__(self, base_url: str, api_key: str | None = None, timeout_s: float = 45.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def chat_with_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        model: str,
        temperature: float,
        tool_choice: str = "auto",
    ) -> dict[str, Any]:
        payload: dict[str, object] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = tool_choice

        response = send(
            "POST",
            f"{self.base_url}/chat/completions",
            headers=self._headers(),
            json=payload,
            timeout_s=self.timeout_s,
        )
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("chat completion response is not a JSON object")
        return data

    def list_models(self) -> list[str]:
        response = send("GET", f"{self.base_url}/models", headers=self._headers(), timeout_s=min(self.timeout_s, 10.0))
        data = response.json()
        rows = data.get("data") if isinstance(data, dict) else None
        return [str(row.get("id")) for row in rows or [] if isinstance(row, dict) and row.get("id")]
