"""
Claude AI integration for the optional advisory trigger summary.

The summary is best-effort: one attempt, bounded by a timeout, never retried.
Callers treat AdvisoryUnavailableError as "no narrative available"; the
numeric trigger ranking never depends on it.
"""

import asyncio
import json
import logging
import re
from typing import List, Optional

import anthropic
import httpx
from anthropic import Anthropic
from pydantic import ValidationError

from app.config import settings
from app.services.ai_schemas import AdvisorySummarySchema
from app.services.prompts import (
    ADVISORY_DISCLAIMER,
    ADVISORY_SYSTEM_PROMPT,
    build_advisory_prompt,
)


logger = logging.getLogger(__name__)

# Explanation length kept when the response has to be salvaged from free text
FALLBACK_EXPLANATION_LENGTH = 300

# Returned only in development when no API key is configured
ILLUSTRATIVE_RESPONSE = {
    "possible_triggers": ["Bell pepper", "Pasta bake"],
    "explanation": (
        "Illustrative example only, no AI service is configured. In this example "
        "bell pepper and pasta bake often appear before digestive symptoms. "
        + ADVISORY_DISCLAIMER
    ),
    "illustrative": True,
    "degraded": False,
}

# Vocabulary for picking food names out of an unstructured response
KNOWN_FOODS = (
    "bell pepper", "pasta bake", "apple", "banana", "milk", "egg", "nut",
    "wheat", "soy", "fish", "shellfish", "seafood", "peanut", "tomato",
    "citrus", "chocolate", "cheese", "bread", "meat", "rice", "potato",
    "onion", "garlic", "spice", "herbs", "oil", "butter", "sugar", "honey",
    "yogurt", "cream", "almond", "hazelnut", "walnut", "cashew", "sesame",
    "mustard", "celery", "parsley", "dill", "basil", "oregano", "thyme",
    "rosemary", "pepper", "chili", "curry", "ginger", "cinnamon", "vanilla",
    "cocoa", "coffee", "tea", "alcohol", "beer", "wine", "lemonade", "juice",
    "gluten", "lactose", "strawberry", "kiwi", "lupin",
)

_KNOWN_FOODS_PATTERN = re.compile(
    r"\b("
    + "|".join(re.escape(food) for food in sorted(KNOWN_FOODS, key=len, reverse=True))
    + r")\b",
    re.IGNORECASE,
)


def _strip_markdown_json(text: str) -> str:
    """Strip markdown code block wrappers from JSON text."""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return text


def _fix_trailing_commas(text: str) -> str:
    """Fix trailing commas in JSON (common LLM error)."""
    text = re.sub(r",\s*}", "}", text)
    text = re.sub(r",\s*]", "]", text)
    return text


def extract_triggers(text: str) -> List[str]:
    """Known food names mentioned in text, capitalized, first mention first."""
    triggers: List[str] = []
    for match in _KNOWN_FOODS_PATTERN.finditer(text or ""):
        name = match.group(1).lower().capitalize()
        if name not in triggers:
            triggers.append(name)
    return triggers


class AdvisorySummarizer:
    """Produces a plain-language narrative next to the numeric ranking."""

    def __init__(self, api_key: Optional[str] = None):
        api_key = settings.anthropic_api_key if api_key is None else api_key
        self.client: Optional[Anthropic] = None
        if api_key:
            timeout = httpx.Timeout(
                timeout=settings.advisory_timeout,
                connect=settings.advisory_connect_timeout,
            )
            # No retries: a failed summary is reported, not repeated
            self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = settings.advisory_model

    async def summarize_correlations(
        self, foods: List[str], symptoms: List[str]
    ) -> dict:
        """
        Ask Claude which of the foods may be associated with the symptoms.

        Args:
            foods: Flattened food names from the filtered food entries
            symptoms: Symptom descriptions from the filtered symptom entries

        Returns:
            {
                "possible_triggers": [str],
                "explanation": str,
                "illustrative": bool,  # canned development response
                "degraded": bool       # salvaged from a non-JSON response
            }

        Raises:
            AdvisoryUnavailableError: Not configured, network or HTTP failure
        """
        if self.client is None:
            if settings.environment == "development":
                logger.warning(
                    "No Anthropic API key configured, returning illustrative advisory response"
                )
                return dict(ILLUSTRATIVE_RESPONSE)
            raise AdvisoryUnavailableError("Advisory service is not configured")

        try:
            response = await asyncio.to_thread(
                self.client.messages.create,
                model=self.model,
                max_tokens=settings.advisory_max_tokens,
                system=ADVISORY_SYSTEM_PROMPT,
                messages=[
                    {"role": "user", "content": build_advisory_prompt(foods, symptoms)},
                    {"role": "assistant", "content": "{"},
                ],
            )
        except anthropic.APIConnectionError as e:
            raise AdvisoryUnavailableError(
                "Advisory service temporarily unavailable"
            ) from e
        except anthropic.APIStatusError as e:
            raise AdvisoryUnavailableError(
                f"Advisory service error (status {e.status_code})"
            ) from e

        response_text = ""
        for block in response.content:
            if hasattr(block, "text"):
                response_text += block.text

        if not response_text.strip():
            raise AdvisoryUnavailableError("Advisory service returned no text")

        return self.parse_response(response_text, prefill="{")

    def parse_response(self, raw_text: str, prefill: str = "") -> dict:
        """
        Validate the JSON response, or salvage what we can from free text.

        On schema failure the trigger list comes from keyword matching and the
        explanation is the truncated raw text.
        """
        json_str = _strip_markdown_json(prefill + raw_text.strip())
        json_str = _fix_trailing_commas(json_str)

        try:
            validated = AdvisorySummarySchema.model_validate(json.loads(json_str))
            return {
                "possible_triggers": validated.possible_triggers,
                "explanation": validated.explanation,
                "illustrative": False,
                "degraded": False,
            }
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(
                "Advisory response failed schema validation, using keyword fallback: %s",
                e,
            )

        return {
            "possible_triggers": extract_triggers(raw_text),
            "explanation": raw_text[:FALLBACK_EXPLANATION_LENGTH] + "...",
            "illustrative": False,
            "degraded": True,
        }


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class AdvisoryUnavailableError(Exception):
    """Advisory summary could not be produced."""

    pass
