"""Scorer agent: importance score, category and bullet summary per item.

This module implements the ScorerAgent, which sends a whole batch of
deduplicated candidate items to a language model in a single request
and maps the model's JSON answer back onto the items.

Design Philosophy:
    - One request per run: the batch is serialized into one prompt
    - Graceful degradation: malformed output never fails the run
    - Hard failures propagate: network, auth and missing-credential
      errors are raised for the pipeline to handle

Fallback Policy:
    - Response is not a JSON array: every item gets score 5, category
      Other and a single bullet with the first 120 chars of its content
    - Array has no entry for an item's URL: that item alone gets the
      same defaults
    - Entry present but without usable bullets: the fallback bullet
    - More than 3 bullets: the first 3 are kept
"""

import json
import logging
import math
from typing import Any

from openai import AsyncOpenAI
from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIModel
from pydantic_ai.profiles.openai import OpenAIModelProfile
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider

from config import Config
from errors import ConfigurationMissing
from models.category import Category, normalize_category
from models.story import DEFAULT_SCORE, MAX_BULLETS, CandidateItem, ScoredItem
from sources.utils import strip_code_fences

logger = logging.getLogger(__name__)

MIN_SCORE = 1.0
MAX_SCORE = 10.0

SCORING_PROMPT = f"""You are an AI news editor. Score each story for importance to the AI/ML community.

Return a JSON array where each item has:
- url: (same as input)
- score: number 1-10 (10 = groundbreaking, 7 = notable, 4 = routine, 1 = trivial/noise)
- bullets: array of up to 3 short bullet points explaining what happened and why it matters
- category: one of: {", ".join(c.value for c in Category)}

Scoring guide:
- 9-10: Major model releases, significant safety findings, landmark policy
- 7-8: New research papers with clear impact, company pivots, notable funding
- 5-6: Minor releases, incremental research, general industry news
- 1-4: Opinion pieces, minor updates, duplicates of already-known news

Return ONLY the JSON array, no other text."""


def _parse_local_model(model_str: str) -> tuple[str, str] | None:
    """Parse local model string into (model_name, base_url) or None if not local."""
    if model_str.startswith("openai:") and "@" in model_str:
        rest = model_str[7:]  # Remove "openai:" prefix
        model_name, base_url = rest.split("@", 1)
        return model_name, base_url
    return None


def _create_model(model_str: str, gemini_api_key: str) -> Model | str:
    """Create the appropriate model based on the model string.

    Supports:
    - Local OpenAI-compatible servers: 'openai:{model_name}@http://127.0.0.1:8080/v1'
    - Gemini: 'google-gla:gemini-2.5-flash' (credential taken from config)
    - Anything else PydanticAI can infer from a string

    Raises:
        ConfigurationMissing: For a Gemini model without GEMINI_API_KEY
    """
    parsed = _parse_local_model(model_str)
    if parsed:
        model_name, base_url = parsed
        logger.info("Using local model | model=%s base_url=%s", model_name, base_url)
        # Local servers don't need authentication - use placeholder
        client = AsyncOpenAI(base_url=base_url, api_key="local-model")
        profile = OpenAIModelProfile(supports_json_object_output=False)
        return OpenAIModel(
            model_name=model_name,
            provider=OpenAIProvider(openai_client=client),
            profile=profile,
        )
    if model_str.startswith("google-gla:"):
        if not gemini_api_key:
            raise ConfigurationMissing("GEMINI_API_KEY")
        return GoogleModel(
            model_str.split(":", 1)[1],
            provider=GoogleProvider(api_key=gemini_api_key),
        )
    return model_str


def _build_user_message(items: list[CandidateItem]) -> str:
    """Serialize the batch for the scoring prompt."""
    payload = [
        {
            "title": item.title,
            "url": item.url,
            "sourceDomain": item.source_domain,
            "rawContent": item.raw_content,
            "publishedAt": item.published_at.isoformat() if item.published_at else None,
        }
        for item in items
    ]
    return "Stories to score:\n" + json.dumps(payload, ensure_ascii=False)


def parse_scores(text: str) -> list[dict[str, Any]] | None:
    """Parse the model response into scoring entries.

    Args:
        text: Raw model output, possibly fenced

    Returns:
        List of entry dicts (non-object entries dropped), or None when the
        response is not a JSON array
    """
    try:
        data = json.loads(strip_code_fences(text))
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(data, list):
        return None
    return [entry for entry in data if isinstance(entry, dict)]


def _coerce_score(value: Any) -> float:
    """Turn a model-supplied score into a float within [1, 10]."""
    if isinstance(value, bool):
        return DEFAULT_SCORE
    try:
        score = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SCORE
    if math.isnan(score):
        return DEFAULT_SCORE
    return min(MAX_SCORE, max(MIN_SCORE, score))


def _coerce_bullets(entry: dict[str, Any]) -> list[str]:
    """Extract at most three non-blank string bullets from an entry."""
    bullets = entry.get("bullets")
    if bullets is None:
        bullets = entry.get("summary")
    if isinstance(bullets, str):
        bullets = [bullets]
    if not isinstance(bullets, list):
        return []
    cleaned = [b.strip() for b in bullets if isinstance(b, str) and b.strip()]
    return cleaned[:MAX_BULLETS]


def score_from_entry(item: CandidateItem, entry: dict[str, Any] | None) -> ScoredItem:
    """Combine an item with its scoring entry (or the defaults if None)."""
    if entry is None:
        return ScoredItem.with_defaults(item)
    bullets = _coerce_bullets(entry) or [item.fallback_summary]
    return ScoredItem.from_candidate(
        item,
        score=_coerce_score(entry.get("score")),
        summary_bullets=bullets,
        category=normalize_category(entry.get("category")),
    )


def apply_scores(items: list[CandidateItem], text: str) -> list[ScoredItem]:
    """Map a model response back onto the batch, applying fallbacks.

    Returns one ScoredItem per input item, in input order.
    """
    entries = parse_scores(text)
    if entries is None:
        logger.warning("Scorer response is not a JSON array; using defaults | items=%d", len(items))
        return default_scored(items)

    by_url: dict[str, dict[str, Any]] = {}
    for entry in entries:
        url = entry.get("url")
        if isinstance(url, str):
            by_url.setdefault(url, entry)

    scored = [score_from_entry(item, by_url.get(item.url)) for item in items]
    missing = sum(1 for item in items if item.url not in by_url)
    if missing:
        logger.warning("Scorer response missing items; using defaults | missing=%d total=%d", missing, len(items))
    return scored


def default_scored(items: list[CandidateItem]) -> list[ScoredItem]:
    """Score every item with the fallback verdict."""
    return [ScoredItem.with_defaults(item) for item in items]


class ScorerAgent:
    """Scores, categorizes and summarizes candidate items with an LLM.

    The agent is built on first use, so a missing credential surfaces
    as a failure of ``score()`` rather than of construction.

    Error Handling:
        Malformed model output is absorbed (see module docstring). Any
        other failure, including ConfigurationMissing, is raised.

    Example:
        >>> scorer = ScorerAgent(config)
        >>> scored = await scorer.score(items)
        >>> scored[0].category
        <Category.RESEARCH: 'Research'>
    """

    def __init__(self, config: Config, model: Model | str | None = None):
        """Initialize the scorer.

        Args:
            config: Application configuration (model string, credential, timeout)
            model: Optional model override (a PydanticAI Model or model string)
        """
        self.config = config
        self._model = model
        self._agent: Agent[None, str] | None = None

    def _get_agent(self) -> Agent[None, str]:
        if self._agent is None:
            model = self._model
            if model is None:
                model = _create_model(self.config.scorer_model, self.config.gemini_api_key)
            self._agent = Agent(
                model,
                output_type=str,
                system_prompt=SCORING_PROMPT,
                model_settings={"timeout": self.config.scorer_timeout_seconds},
                defer_model_check=True,
            )
        return self._agent

    async def score(self, items: list[CandidateItem]) -> list[ScoredItem]:
        """Score a batch of items in one model request.

        Args:
            items: Deduplicated candidate items

        Returns:
            One ScoredItem per input item, in input order. Empty input
            returns [] without calling the model.

        Raises:
            ConfigurationMissing: If the scoring credential is not set
            Exception: Any transport or provider error from the model call
        """
        if not items:
            return []

        agent = self._get_agent()
        result = await agent.run(_build_user_message(items))
        usage = result.usage()
        logger.info(
            "Scoring complete | items=%d requests=%d tokens=%d/%d",
            len(items),
            usage.requests,
            usage.input_tokens or 0,
            usage.output_tokens or 0,
        )
        return apply_scores(items, result.output)
