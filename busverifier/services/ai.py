"""
Business Verifier — AI API service (Gemini generateContent).
Single-attempt async call with JSON extraction; retries live in the pipeline.
"""

import json
import re
import logging

import aiohttp

from busverifier.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

TIMEOUT = aiohttp.ClientTimeout(total=120)


async def call_ai(
    prompt: str,
    *,
    temperature: float = 0.2,
    max_tokens: int = 8000,
    json_output: bool = True,
    settings: Settings | None = None,
) -> str:
    """Call the Gemini generateContent endpoint once and return the text."""
    cfg = settings or default_settings
    token = cfg.gemini_api_key
    if not token:
        raise RuntimeError("GEMINI_API_KEY not set — cannot call AI API")

    generation_config: dict = {
        "temperature": temperature,
        "maxOutputTokens": max_tokens,
    }
    if json_output:
        generation_config["responseMimeType"] = "application/json"

    payload = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": generation_config,
    }
    headers = {
        "x-goog-api-key": token,
        "Content-Type": "application/json",
    }
    async with aiohttp.ClientSession(timeout=TIMEOUT) as session:
        async with session.post(cfg.ai_effective_url, json=payload, headers=headers) as resp:
            body = await resp.text()
            if resp.status != 200:
                raise RuntimeError(f"AI API HTTP {resp.status}: {body[:500]}")
            data = json.loads(body)
            candidates = data.get("candidates") or [{}]
            parts = candidates[0].get("content", {}).get("parts", [])
            content = "\n".join(p["text"] for p in parts if "text" in p)
            return strip_fences(content)


# ── Parsing helpers ─────────────────────────────────────────────


def strip_fences(text: str) -> str:
    """Remove markdown code fences."""
    text = re.sub(r"^```(?:json)?\s*\n?", "", text, flags=re.MULTILINE)
    text = re.sub(r"^```\s*$", "", text, flags=re.MULTILINE)
    return text.strip()


def extract_json(text: str) -> dict:
    """Extract JSON object from AI response."""
    cleaned = strip_fences(text)

    # Try full text
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Try outermost { ... }
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError:
            pass

    raise ValueError(f"Could not extract JSON from AI response:\n{cleaned[:300]}…")
