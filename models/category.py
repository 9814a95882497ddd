"""Story categories assigned by the scorer.

The scorer must pick one of a fixed set of categories. Model output is
not trusted to spell them exactly, so ``normalize_category`` maps case
and spacing variants plus a handful of common aliases onto the enum, and
falls back to OTHER for anything it does not recognize.
"""

import logging
import re
from enum import Enum

logger = logging.getLogger(__name__)


class Category(str, Enum):
    """Topic categories for scored stories.

    MODEL_RELEASES: New or updated models and model APIs
    RESEARCH: Papers, benchmarks, technical findings
    AI_POLICY: Regulation, legislation, government action
    INDUSTRY: Companies, funding, products, business moves
    AI_SAFETY: Alignment, evaluations, safety incidents
    AI_AGENTS: Autonomous agents and agent tooling
    OTHER: Uncategorized or unclear content
    """

    MODEL_RELEASES = "Model Releases"
    RESEARCH = "Research"
    AI_POLICY = "AI Policy"
    INDUSTRY = "Industry"
    AI_SAFETY = "AI Safety"
    AI_AGENTS = "AI Agents"
    OTHER = "Other"


def _key(value: str) -> str:
    """Collapse case, spacing, underscores and hyphens."""
    return re.sub(r"[\s_\-]+", " ", value.strip().lower())


_BY_KEY: dict[str, Category] = {_key(c.value): c for c in Category}

# Map common alias strings from LLM output to supported categories.
_CATEGORY_ALIASES: dict[str, Category] = {
    "model release": Category.MODEL_RELEASES,
    "release": Category.MODEL_RELEASES,
    "releases": Category.MODEL_RELEASES,
    "models": Category.MODEL_RELEASES,
    "paper": Category.RESEARCH,
    "papers": Category.RESEARCH,
    "academic": Category.RESEARCH,
    "policy": Category.AI_POLICY,
    "regulation": Category.AI_POLICY,
    "government": Category.AI_POLICY,
    "business": Category.INDUSTRY,
    "funding": Category.INDUSTRY,
    "company": Category.INDUSTRY,
    "safety": Category.AI_SAFETY,
    "alignment": Category.AI_SAFETY,
    "agents": Category.AI_AGENTS,
    "agent": Category.AI_AGENTS,
    "ai agent": Category.AI_AGENTS,
}


def normalize_category(value: str | Category | None) -> Category:
    """Normalize a raw category value into a supported Category."""
    if isinstance(value, Category):
        return value
    if value is None:
        return Category.OTHER
    raw = str(value)
    if not raw.strip():
        return Category.OTHER
    key = _key(raw)
    mapped = _BY_KEY.get(key) or _CATEGORY_ALIASES.get(key)
    if mapped is not None:
        return mapped
    logger.warning("Unknown scorer category; defaulting to Other | value=%s", value)
    return Category.OTHER
