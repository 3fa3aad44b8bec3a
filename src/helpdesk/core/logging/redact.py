from __future__ import annotations

import re
from typing import Mapping

MASK = "***"

_SECRET_ENV_RE = re.compile(r"(TOKEN|KEY|SECRET|PASSWORD)", re.IGNORECASE)
_ASSIGNMENT_RE = re.compile(r"(?i)\b(api[_-]?key|access[_-]?token|token|secret|password)(\s*[=:]\s*)([^\s,;\"']+)")
_BEARER_RE = re.compile(r"(?i)\b(bearer\s+)[^\s\"']+")
_PROVIDER_KEY_RE = re.compile(r"\bsk-[A-Za-z0-9_-]{8,}")


def redact_string(text: str) -> str:
    """Mask model-endpoint credentials that reach log lines through HTTP errors."""
    text = _ASSIGNMENT_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}{MASK}", text)
    text = _BEARER_RE.sub(lambda m: f"{m.group(1)}{MASK}", text)
    return _PROVIDER_KEY_RE.sub(MASK, text)


def redact_env(env: Mapping[str, str]) -> dict[str, str]:
    return {key: MASK if value and _SECRET_ENV_RE.search(key) else value for key, value in env.items()}
