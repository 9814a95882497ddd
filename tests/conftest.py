from __future__ import annotations

from pathlib import Path

import pytest

from config import Config
from models.story import CandidateItem


def make_item(url: str, title: str | None = None, raw_content: str = "", **extra) -> CandidateItem:
    return CandidateItem(
        title=title or f"Story at {url}",
        url=url,
        source_domain="example.com",
        raw_content=raw_content,
        **extra,
    )


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        perplexity_api_key="pplx-test",
        socialdata_api_key="sd-test",
        gemini_api_key="gemini-test",
        search_queries=["AI model releases", "AI policy news"],
        twitter_accounts=["karpathy"],
        db_path=tmp_path / "signal.db",
        log_dir=tmp_path / "log",
    )
