"""
AICAMPUS Backend - Event Recommender.
Loads the campus event catalog from JSON, asks Gemini to rank it against
the user's interests, and falls back to local tag matching whenever the
model's answer doesn't decode into the expected shape.
"""

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from aicampus.constants import FALLBACK_RECOMMENDATION_LIMIT, MAX_RECOMMENDATIONS
from aicampus.errors import ConfigurationError, NotFoundError, ValidationError

DEFAULT_EVENTS_PATH = Path(__file__).resolve().parent / "data" / "events_catalog.json"

_events_cache: list[dict] | None = None

_FENCE_RE = re.compile(r"```(?:json)?\n?")


def _events_path() -> str:
    """Read at call time so tests and .env can point elsewhere."""
    return os.getenv("EVENTS_DATA_PATH", str(DEFAULT_EVENTS_PATH))


def _load_events() -> list[dict]:
    """Load events from the catalog file. Cached after first load."""
    global _events_cache
    if _events_cache is not None:
        return _events_cache

    path = _events_path()
    try:
        with open(path, "r", encoding="utf-8") as f:
            _events_cache = json.load(f)
    except FileNotFoundError:
        print(f"[EVENTS] Catalog not found at {path}, using empty list")
        _events_cache = []
    except json.JSONDecodeError as e:
        print(f"[EVENTS] Invalid JSON in {path}: {e}")
        _events_cache = []

    return _events_cache


def reload_events() -> list[dict]:
    """Force reload events from disk (useful after data changes)."""
    global _events_cache
    _events_cache = None
    return _load_events()


def get_all_events() -> dict:
    """Returns: {events: [...], total: int}"""
    events = _load_events()
    return {"events": events, "total": len(events)}


# ── AI response decoding ────────────────────────────────────────────

class AIRecommendation(BaseModel):
    eventId: int
    relevanceScore: int = Field(ge=1, le=100)
    reason: str = ""


class AIRecommendationResponse(BaseModel):
    recommendations: list[AIRecommendation]
    summary: str = ""


@dataclass
class ParseResult:
    ok: bool
    value: AIRecommendationResponse | None = None
    error: str = ""


def strip_code_fence(text: str) -> str:
    """Remove ```json / ``` markers the model likes to wrap JSON in."""
    return _FENCE_RE.sub("", text or "").strip()


def parse_recommendations(text: str | None) -> ParseResult:
    """Decode the model's answer. Never raises; failure is a result."""
    cleaned = strip_code_fence(text or "")
    if not cleaned:
        return ParseResult(ok=False, error="empty response")
    try:
        value = AIRecommendationResponse.model_validate_json(cleaned)
    except SchemaError as e:
        return ParseResult(ok=False, error=str(e))
    return ParseResult(ok=True, value=value)


def merge_recommendations(parsed: AIRecommendationResponse, events: list[dict],
                          limit: int = MAX_RECOMMENDATIONS) -> list[dict]:
    """Attach score and reason to full event records. Unknown and repeated ids are dropped."""
    by_id = {event["id"]: event for event in events}
    merged = []
    seen = set()
    for rec in parsed.recommendations:
        event = by_id.get(rec.eventId)
        if event is None or rec.eventId in seen:
            continue
        seen.add(rec.eventId)
        merged.append({
            **event,
            "relevanceScore": rec.relevanceScore,
            "recommendationReason": rec.reason,
        })
        if len(merged) >= limit:
            break
    return merged


# ── Fallback ────────────────────────────────────────────────────────

def _tag_matches(tag: str, interest: str) -> bool:
    tag_l = tag.lower()
    interest_l = interest.lower()
    return tag_l in interest_l or interest_l in tag_l


def fallback_recommendations(events: list[dict], interests: list[str],
                             limit: int = FALLBACK_RECOMMENDATION_LIMIT) -> list[dict]:
    """
    Events sharing at least one tag with the interests (case-insensitive
    substring either way), in catalog order, capped at `limit`.
    Score is the share of the event's tags that matched.
    """
    wanted = [i.strip() for i in interests if i and i.strip()]
    picked = []
    for event in events:
        tags = event.get("tags", [])
        matched = [tag for tag in tags if any(_tag_matches(tag, i) for i in wanted)]
        if not matched:
            continue
        score = max(1, min(100, round(100 * len(matched) / len(tags))))
        picked.append({
            **event,
            "relevanceScore": score,
            "recommendationReason": f"Cocok dengan minat kamu: {', '.join(matched)}",
        })
        if len(picked) >= limit:
            break
    return picked


# ── Flow ────────────────────────────────────────────────────────────

def build_recommendation_prompt(interests: list[str], events: list[dict]) -> str:
    return f"""Kamu adalah AI Event Recommender untuk kampus UNS.

User memiliki minat di: {', '.join(interests)}

Berikut adalah daftar event yang tersedia:
{json.dumps(events, indent=2, ensure_ascii=False)}

Tugasmu:
1. Analisis minat user dan cocokkan dengan event yang tersedia
2. Rekomendasikan 5-7 event yang PALING SESUAI dengan minat user
3. Urutkan dari yang paling relevan ke yang kurang relevan
4. Berikan penjelasan singkat (1-2 kalimat) kenapa event ini cocok untuk user

Format response dalam JSON:
{{
  "recommendations": [
    {{
      "eventId": number,
      "relevanceScore": number (1-100),
      "reason": "string (kenapa event ini cocok)"
    }}
  ],
  "summary": "string (ringkasan rekomendasi dalam 2-3 kalimat)"
}}

PENTING: Response harus dalam format JSON yang valid!"""


def clean_interests(interests) -> list[str]:
    """Validate the request's interests array. Raises ValidationError."""
    if not isinstance(interests, list):
        raise ValidationError("Interests array is required")
    cleaned = [i.strip() for i in interests if isinstance(i, str) and i.strip()]
    if not cleaned:
        raise ValidationError("Interests array is required")
    return cleaned


async def recommend_events(provider, interests) -> dict:
    """
    Rank the catalog for the given interests.
    Returns: {recommendations, summary, totalEvents, matchedEvents, source}
    """
    wanted = clean_interests(interests)

    if provider is None or not provider.configured:
        raise ConfigurationError("Gemini API key not configured")

    events = _load_events()
    if not events:
        raise NotFoundError("No events available at the moment")

    prompt = build_recommendation_prompt(wanted, events)
    text = await provider.complete(
        [{"role": "user", "content": prompt}], temperature=0.7, max_tokens=2048,
    )

    result = parse_recommendations(text)
    if result.ok:
        recommended = merge_recommendations(result.value, events)
        summary = result.value.summary
        source = "ai"
    else:
        print(f"[EVENTS] Failed to parse AI response, using tag fallback: {result.error[:200]}")
        recommended = fallback_recommendations(events, wanted)
        summary = f"Menemukan {len(recommended)} event yang sesuai dengan minat Anda."
        source = "fallback"

    return {
        "recommendations": recommended,
        "summary": summary,
        "totalEvents": len(events),
        "matchedEvents": len(recommended),
        "source": source,
    }
