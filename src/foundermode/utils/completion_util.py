import os
import time
import logging
from typing import Optional

from dotenv import load_dotenv
from openai import OpenAI

load_dotenv()

logger = logging.getLogger(__name__)

_API_KEY = os.getenv("OPENAI_API_KEY")
_BASE_URL = os.getenv("OPENAI_BASE_URL")
_DEFAULT_TIMEOUT = float(os.getenv("FOUNDER_OPENAI_TIMEOUT", "120"))

# Model fallbacks
_MODEL_FALLBACKS = {
    "gpt-4.1-nano": "gpt-4o-mini",
    "gpt-3.5-turbo": "gpt-4o-mini",
}

# Client cache, keyed by api key
_clients: dict[str, OpenAI] = {}


def _get_openai_client(api_key: str) -> OpenAI:
    """Get (and cache) an OpenAI API client."""
    client = _clients.get(api_key)
    if client is None:
        client = OpenAI(api_key=api_key, base_url=_BASE_URL, timeout=_DEFAULT_TIMEOUT, max_retries=2)
        _clients[api_key] = client
    return client


def generate_text(prompt: list[dict], model: str = "gpt-4o-mini", api_key: Optional[str] = None) -> tuple[str, int | None]:
    """
    Generate text with the OpenAI chat completions API.

    An explicit api_key (per-game settings) wins over OPENAI_API_KEY.
    """
    key = api_key or _API_KEY
    if not key:
        raise RuntimeError("No API keys configured")

    client = _get_openai_client(key)
    start_time = time.time()
    try:
        response = client.chat.completions.create(model=model, messages=prompt, timeout=_DEFAULT_TIMEOUT)
        actual_model = model
    except Exception as exc:
        fb = _MODEL_FALLBACKS.get(model)
        if not fb:
            raise RuntimeError(f"OpenAI completion failed: {exc}") from exc
        logger.warning("Model %s failed (%s); retrying with %s", model, exc, fb)
        try:
            response = client.chat.completions.create(model=fb, messages=prompt, timeout=_DEFAULT_TIMEOUT)
        except Exception as fb_exc:
            raise RuntimeError(f"OpenAI completion failed: {fb_exc}") from fb_exc
        actual_model = fb

    duration = time.time() - start_time
    if duration > 10:
        logger.warning(f"Slow GPT API call: {duration:.1f}s for {actual_model}")

    message = response.choices[0].message.content or ""
    tokens = getattr(getattr(response, "usage", None), "total_tokens", None)
    return message, tokens
