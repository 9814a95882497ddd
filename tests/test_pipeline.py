from __future__ import annotations

import sqlite3

import pytest

from agents.scorer import ScorerAgent
from database import Database
from errors import ConfigurationMissing, UpstreamError, UpstreamUnavailable
from models.category import Category
from models.run import FetchResult, RunOutcome, RunStatus
from models.story import CandidateItem, ScoredItem
from pipeline import Pipeline, decide_status
from sources.timeline import TimelineBatch
from tests.conftest import make_item


class FakeStore:
    def __init__(self, existing: set[str] | None = None):
        self.urls = set(existing or ())
        self.inserted: list[ScoredItem] = []
        self.logs: list[RunOutcome] = []

    def list_existing_urls(self) -> set[str]:
        return set(self.urls)

    def insert_scored_items(self, items: list[ScoredItem]) -> int:
        count = 0
        for item in items:
            if item.url not in self.urls:
                self.urls.add(item.url)
                self.inserted.append(item)
                count += 1
        return count

    def append_run_log(self, outcome: RunOutcome) -> None:
        self.logs.append(outcome)


class BrokenStore(FakeStore):
    def list_existing_urls(self) -> set[str]:
        raise sqlite3.OperationalError("database is locked")


class FakeSearch:
    name = "search"

    def __init__(self, results: dict[str, list[CandidateItem] | Exception]):
        self.results = results

    async def fetch(self, session, query: str) -> list[CandidateItem]:
        result = self.results[query]
        if isinstance(result, Exception):
            raise result
        return result


class FakeTimeline:
    name = "timeline"

    def __init__(self, items: list[CandidateItem] | None = None, error: Exception | None = None):
        self.items = items or []
        self.error = error

    async def fetch_all(self, session, handles: list[str]) -> TimelineBatch:
        if self.error is not None:
            raise self.error
        return TimelineBatch(items=list(self.items))


class FakeScorer:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[list[CandidateItem]] = []

    async def score(self, items: list[CandidateItem]) -> list[ScoredItem]:
        self.calls.append(list(items))
        if self.error is not None:
            raise self.error
        return [
            ScoredItem.from_candidate(i, score=8, summary_bullets=["scored"], category=Category.RESEARCH)
            for i in items
        ]


def _pipeline(config, *, store=None, search=None, timeline=None, scorer=None) -> Pipeline:
    return Pipeline(
        config,
        storage=store or FakeStore(),
        search=search or FakeSearch({q: [] for q in config.search_queries}),
        timeline=timeline or FakeTimeline(),
        scorer=scorer or FakeScorer(),
    )


@pytest.mark.asyncio
async def test_all_queries_succeed_with_disjoint_urls(config) -> None:
    store = FakeStore()
    search = FakeSearch(
        {
            "AI model releases": [make_item("https://a.com/1"), make_item("https://a.com/2")],
            "AI policy news": [make_item("https://b.com/1")],
        }
    )

    outcome = await _pipeline(config, store=store, search=search).run_once()

    assert outcome.status is RunStatus.SUCCESS
    assert outcome.items_stored == 3
    assert outcome.error_detail is None
    assert [i.url for i in store.inserted] == ["https://a.com/1", "https://a.com/2", "https://b.com/1"]
    assert store.logs == [outcome]


@pytest.mark.asyncio
async def test_all_queries_fail_and_nothing_stored_is_error(config) -> None:
    store = FakeStore()
    scorer = FakeScorer()
    search = FakeSearch(
        {
            "AI model releases": UpstreamUnavailable("search: connection refused"),
            "AI policy news": UpstreamUnavailable("search: request timed out after 30s"),
        }
    )
    timeline = FakeTimeline(error=ConfigurationMissing("SOCIALDATA_API_KEY"))

    outcome = await _pipeline(config, store=store, search=search, timeline=timeline, scorer=scorer).run_once()

    assert outcome.status is RunStatus.ERROR
    assert outcome.items_stored == 0
    assert outcome.error_detail.startswith("All 2 search queries failed")
    assert "UpstreamUnavailable" in outcome.error_detail
    assert scorer.calls == []
    assert store.logs == [outcome]


@pytest.mark.asyncio
async def test_partial_failure_with_duplicate_timeline_item(config) -> None:
    store = FakeStore()
    search = FakeSearch(
        {
            "AI model releases": UpstreamError(500, "Internal Server Error", source="search"),
            "AI policy news": [make_item("https://shared.com/story", title="From search")],
        }
    )
    timeline = FakeTimeline(items=[make_item("https://shared.com/story", title="From timeline")])

    outcome = await _pipeline(config, store=store, search=search, timeline=timeline).run_once()

    assert outcome.status is RunStatus.SUCCESS
    assert outcome.items_stored == 1
    assert store.inserted[0].title == "From search"


@pytest.mark.asyncio
async def test_unreachable_scorer_stores_default_verdicts(config) -> None:
    config.search_queries = ["AI model releases"]
    db = Database(config.db_path)
    text = "A" * 300
    search = FakeSearch({"AI model releases": [make_item("https://long.com", raw_content=text)]})
    scorer = FakeScorer(error=UpstreamUnavailable("scorer: connection refused"))

    outcome = await _pipeline(config, store=db, search=search, scorer=scorer).run_once()

    story = db.get_story("https://long.com")
    assert outcome.status is RunStatus.SUCCESS
    assert outcome.items_stored == 1
    assert story["bullets"] == ["A" * 120]
    assert story["score"] == 5
    assert story["category"] == "Other"
    assert db.latest_run_log()["status"] == "success"
    db.close()


@pytest.mark.asyncio
async def test_missing_scoring_credential_keeps_fetched_items(config) -> None:
    config.gemini_api_key = ""
    config.scorer_model = "google-gla:gemini-2.5-flash"
    store = FakeStore()
    search = FakeSearch(
        {
            "AI model releases": [make_item("https://a.com", raw_content="content a")],
            "AI policy news": [],
        }
    )

    outcome = await _pipeline(config, store=store, search=search, scorer=ScorerAgent(config)).run_once()

    assert outcome.items_stored == 1
    assert store.inserted[0].summary_bullets == ["content a"]
    assert store.inserted[0].category is Category.OTHER


@pytest.mark.asyncio
async def test_all_queries_fail_but_timeline_stores_is_success(config) -> None:
    store = FakeStore()
    search = FakeSearch({q: UpstreamUnavailable("down") for q in config.search_queries})
    timeline = FakeTimeline(items=[make_item("https://x.com/karpathy/status/1")])

    outcome = await _pipeline(config, store=store, search=search, timeline=timeline).run_once()

    assert outcome.status is RunStatus.SUCCESS
    assert outcome.items_stored == 1


@pytest.mark.asyncio
async def test_nothing_new_is_success_without_scoring(config) -> None:
    store = FakeStore(existing={"https://a.com"})
    scorer = FakeScorer()
    search = FakeSearch({"AI model releases": [make_item("https://a.com")], "AI policy news": []})

    outcome = await _pipeline(config, store=store, search=search, scorer=scorer).run_once()

    assert outcome.status is RunStatus.SUCCESS
    assert outcome.items_stored == 0
    assert scorer.calls == []
    assert store.logs == [outcome]


@pytest.mark.asyncio
async def test_no_configured_queries_is_not_an_error(config) -> None:
    config.search_queries = []

    outcome = await _pipeline(config, search=FakeSearch({})).run_once()

    assert outcome.status is RunStatus.SUCCESS
    assert outcome.items_stored == 0


@pytest.mark.asyncio
async def test_storage_failure_is_logged_as_error(config) -> None:
    store = BrokenStore()

    outcome = await _pipeline(config, store=store).run_once()

    assert outcome.status is RunStatus.ERROR
    assert "OperationalError" in outcome.error_detail
    assert store.logs == [outcome]


@pytest.mark.asyncio
async def test_merge_order_is_search_then_timeline(config) -> None:
    store = FakeStore()
    search = FakeSearch(
        {
            "AI model releases": [make_item("https://s1.com")],
            "AI policy news": [make_item("https://s2.com")],
        }
    )
    timeline = FakeTimeline(items=[make_item("https://t1.com")])
    scorer = FakeScorer()

    await _pipeline(config, store=store, search=search, timeline=timeline, scorer=scorer).run_once()

    assert [i.url for i in scorer.calls[0]] == ["https://s1.com", "https://s2.com", "https://t1.com"]


def test_decide_status_error_only_when_every_query_failed_and_nothing_stored() -> None:
    failed = FetchResult(source="search", target="q1", error=UpstreamUnavailable("down"))
    ok = FetchResult(source="search", target="q2", items=[])

    assert decide_status([failed, ok], 0).status is RunStatus.SUCCESS
    assert decide_status([failed], 1).status is RunStatus.SUCCESS
    assert decide_status([], 0).status is RunStatus.SUCCESS
    assert decide_status([failed, failed], 0).status is RunStatus.ERROR


def test_decide_status_detail_limits_quoted_failures() -> None:
    failures = [
        FetchResult(source="search", target=f"q{n}", error=UpstreamError(500, "oops", source="search"))
        for n in range(5)
    ]

    outcome = decide_status(failures, 0)

    assert outcome.error_detail.startswith("All 5 search queries failed: q0: UpstreamError")
    assert outcome.error_detail.endswith("and 2 more")
