"""Runtime settings read from the environment (and .env via python-dotenv)."""

import os
import re
from pathlib import Path

from pydantic import BaseModel

DEFAULT_MODEL = "google/gemini-2.5-flash"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_COMPLETIONS_PATH = "/chat/completions"

_API_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class Settings(BaseModel):
    openrouter_api_key: str = ""
    openrouter_model: str = DEFAULT_MODEL
    openrouter_base_url: str = DEFAULT_BASE_URL
    openrouter_completions_path: str = DEFAULT_COMPLETIONS_PATH
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    data_dir: Path = Path("data")

    @property
    def completions_url(self) -> str:
        base = self.openrouter_base_url.strip().rstrip("/")
        path = self.openrouter_completions_path.strip()
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{base}{path}"


def load_settings() -> Settings:
    """Build Settings from environment variables, falling back to defaults."""
    return Settings(
        openrouter_api_key=os.getenv("OPENROUTER_API_KEY", "").strip(),
        openrouter_model=os.getenv("OPENROUTER_MODEL", "") or DEFAULT_MODEL,
        openrouter_base_url=os.getenv("OPENROUTER_BASE_URL", "") or DEFAULT_BASE_URL,
        openrouter_completions_path=(
            os.getenv("OPENROUTER_COMPLETIONS_PATH", "") or DEFAULT_COMPLETIONS_PATH
        ),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", "").strip(),
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", "").strip(),
        data_dir=Path(os.getenv("DATA_DIR", "data")),
    )


def check_api_key(api_key: str) -> str:
    """Validate the provider key before any request is made."""
    key = api_key.strip()
    if not key:
        raise ValueError("Missing OPENROUTER_API_KEY in process env. Set it in .env.")
    if not _API_KEY_RE.match(key) or len(key) < 10:
        raise ValueError(
            "Invalid OPENROUTER_API_KEY format. Confirm you copied a valid "
            "OpenRouter key from the OpenRouter dashboard."
        )
    return key
