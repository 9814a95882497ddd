"""PydanticAI agents for The Signal ingestion pipeline.

ScorerAgent:
    Scores a batch of candidate items for importance, assigns one of the
    fixed categories and writes up to three summary bullets, in a single
    model request. Falls back to default verdicts on malformed output.

Example:
    >>> from agents import ScorerAgent
    >>> scorer = ScorerAgent(config)
    >>> scored = await scorer.score(items)
"""

from agents.scorer import ScorerAgent, apply_scores, default_scored

__all__ = [
    "ScorerAgent",
    "apply_scores",
    "default_scored",
]
