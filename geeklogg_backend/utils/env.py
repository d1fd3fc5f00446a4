from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_CLIENT_URL = "https://geeklog-26b2c.web.app"


def load_env(*, override: bool = False) -> Path | None:
    repo_root = Path(__file__).resolve().parents[2]
    candidates = [
        repo_root / ".env",
        Path.cwd() / ".env",
    ]
    for path in candidates:
        if path.is_file():
            load_dotenv(dotenv_path=path, override=override)
            return path
    return None


def resolve_env(name: str) -> str | None:
    """
    Best-effort lookup for callers that want to continue when the variable is missing.
    """

    value = (os.getenv(name) or "").strip()
    return value or None


def require_env(name: str) -> str:
    value = resolve_env(name)
    if not value:
        raise RuntimeError(f"{name} is not set.")
    return value


def get_client_url() -> str:
    return (resolve_env("CLIENT_URL") or DEFAULT_CLIENT_URL).rstrip("/")
