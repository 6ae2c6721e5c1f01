"""
procscribe.settings
===================
Environment-driven configuration. Values are read once at import after
`.env` has been loaded; the API key is looked up again at call time so
tests can set it with monkeypatch.
"""
from dotenv import load_dotenv
load_dotenv()  # pulls vars from .env

import logging
import os

# ── model ────────────────────────────────────────────────────────────────
MODEL            = os.getenv("PROCSCRIBE_MODEL", "gpt-4o-mini")
CLASSIFIER_MODEL = os.getenv("PROCSCRIBE_CLASSIFIER_MODEL", MODEL)
OPENAI_BASE_URL  = os.getenv("OPENAI_BASE_URL") or None
TEMPERATURE      = float(os.getenv("PROCSCRIBE_TEMPERATURE", "0.1"))

# ── conversation window ─────────────────────────────────────────────────
MESSAGE_WINDOW   = int(os.getenv("PROCSCRIBE_MESSAGE_WINDOW", "16"))
MESSAGE_CLIP     = 700           # chars per message shown to the extractor

LOG_LEVEL        = os.getenv("LOG_LEVEL", "INFO")


def api_key() -> str:
    key = os.getenv("OPENAI_API_KEY")
    if not key:
        raise RuntimeError("OPENAI_API_KEY environment variable not set.")
    return key


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=level or LOG_LEVEL,
                        format="%(asctime)s %(levelname)-8s %(message)s")
