"""Ingestion pipeline orchestration.

This module coordinates one ingestion run:

Pipeline Flow:
    1. SNAPSHOT: Read the set of story URLs already in storage
    2. FETCH: Concurrently run every search query and the account-timeline
       group over one shared HTTP session
    3. MERGE: Search results in query order, then timeline items
    4. DEDUP: Drop URLs already stored or already seen earlier in the batch
    5. SCORE: One scorer request for the whole batch (defaults on hard failure)
    6. SAVE: Insert scored items (storage skips URLs that already exist)
    7. LOG: Decide the run status and append it to the run log, always

Failure Policy:
    - A failing search query is captured as a tagged FetchResult; the
      other queries are unaffected
    - A failing timeline group contributes zero items
    - The run is an error only when every configured search query failed
      and nothing was stored
"""

import asyncio
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any

import aiohttp

from agents.scorer import ScorerAgent, default_scored
from config import Config
from database import Database, StoryStore
from dedup import dedupe
from models.run import FetchResult, RunOutcome, RunStatus
from models.story import CandidateItem, ScoredItem
from observability.logging import clear_context, set_run_context
from observability.tracing import setup_tracing, trace_operation
from sources.search import SearchSource
from sources.timeline import TimelineBatch, TimelineSource
from sources.utils import USER_AGENT, create_ssl_context

logger = logging.getLogger(__name__)

# Query failures quoted in a run's error detail
MAX_DETAIL_FAILURES = 3


@dataclass
class PipelineStats:
    """Statistics from a single pipeline run.

    Attributes:
        fetched: Items fetched from all sources before dedup
        new: Items left after dedup
        queries_failed: Search queries that failed
        accounts_failed: Timeline handles that failed
        scored_fallback: Items given default verdicts because the scorer failed
        stored: Items actually inserted
        duration: Total run time in seconds
    """

    fetched: int = 0
    new: int = 0
    queries_failed: int = 0
    accounts_failed: int = 0
    scored_fallback: int = 0
    stored: int = 0
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d = asdict(self)
        d["duration"] = round(d["duration"], 2)
        return d


def decide_status(search_results: list[FetchResult], items_stored: int) -> RunOutcome:
    """Decide the run outcome from the search results and the stored count.

    The run is an error only when at least one query was configured, all
    of them failed, and nothing was stored. Timeline failures never make
    a run an error on their own.

    Example:
        >>> decide_status([FetchResult("search", "q", error=OSError("down"))], 0).status
        <RunStatus.ERROR: 'error'>
        >>> decide_status([FetchResult("search", "q", error=OSError("down"))], 2).status
        <RunStatus.SUCCESS: 'success'>
    """
    failures = [r for r in search_results if not r.ok]
    if search_results and len(failures) == len(search_results) and items_stored == 0:
        quoted = "; ".join(
            f"{r.target[:60]}: {r.describe_error()}" for r in failures[:MAX_DETAIL_FAILURES]
        )
        more = len(failures) - MAX_DETAIL_FAILURES
        if more > 0:
            quoted += f"; and {more} more"
        return RunOutcome.error(f"All {len(failures)} search queries failed: {quoted}")
    return RunOutcome.success(items_stored)


class Pipeline:
    """Async ingestion pipeline.

    Collaborators are passed in, so tests can substitute any of them.
    ``Pipeline.from_config`` builds the production set.

    Components:
        - storage: StoryStore (SQLite Database in production)
        - search: SearchSource, one request per configured query
        - timeline: TimelineSource, one request per monitored handle
        - scorer: ScorerAgent, one model request per run
    """

    def __init__(
        self,
        config: Config,
        *,
        storage: StoryStore,
        search: SearchSource,
        timeline: TimelineSource,
        scorer: ScorerAgent,
    ):
        self.config = config
        self.storage = storage
        self.search = search
        self.timeline = timeline
        self.scorer = scorer

    @classmethod
    def from_config(cls, config: Config) -> "Pipeline":
        """Build a pipeline with the production collaborators."""
        # Optional: Distributed tracing
        if config.enable_logfire:
            setup_tracing(enabled=True, service_name="signal", token=config.logfire_token)

        return cls(
            config,
            storage=Database(config.db_path),
            search=SearchSource(config),
            timeline=TimelineSource(config),
            scorer=ScorerAgent(config),
        )

    def _create_session(self) -> aiohttp.ClientSession:
        connector = aiohttp.TCPConnector(
            limit=self.config.max_workers,
            ssl=create_ssl_context(),
        )
        return aiohttp.ClientSession(connector=connector, headers={"User-Agent": USER_AGENT})

    async def _fetch_query(self, session: aiohttp.ClientSession, query: str) -> FetchResult:
        """Run one search query, capturing its failure instead of raising."""
        try:
            items = await self.search.fetch(session, query)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            result = FetchResult(source=self.search.name, target=query, error=e)
            logger.warning("Search query failed | query=%s error=%s", query[:60], result.describe_error())
            return result
        return FetchResult(source=self.search.name, target=query, items=items)

    async def _fetch_timelines(self, session: aiohttp.ClientSession) -> TimelineBatch:
        """Run the timeline group; a group-level failure yields zero items."""
        handles = self.config.twitter_accounts
        try:
            return await self.timeline.fetch_all(session, handles)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            failure = FetchResult(source=self.timeline.name, target="all accounts", error=e)
            logger.warning("Timeline source failed | accounts=%d error=%s", len(handles), failure.describe_error())
            return TimelineBatch(failures=[failure])

    async def _fetch_all(self) -> tuple[list[FetchResult], TimelineBatch]:
        """Fan out to every query and the timeline group, then wait for all of them."""
        async with self._create_session() as session:
            query_tasks = [self._fetch_query(session, q) for q in self.config.search_queries]
            *search_results, timeline_batch = await asyncio.gather(
                *query_tasks,
                self._fetch_timelines(session),
            )
        return list(search_results), timeline_batch

    async def _score(self, items: list[CandidateItem], stats: PipelineStats) -> list[ScoredItem]:
        """Score items, degrading to default verdicts if the scorer call fails."""
        try:
            return await self.scorer.score(items)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Scorer failed; using default scores | items=%d type=%s error=%s",
                len(items), type(e).__name__, e,
            )
            stats.scored_fallback = len(items)
            return default_scored(items)

    def _record(self, outcome: RunOutcome) -> None:
        try:
            self.storage.append_run_log(outcome)
        except Exception as e:
            logger.error("Run log write failed | type=%s error=%s", type(e).__name__, e, exc_info=True)

    async def run_once(self) -> RunOutcome:
        """Execute one complete ingestion run.

        Always appends the outcome to the run log, whichever branch was
        taken. Only cancellation propagates.

        Returns:
            RunOutcome with the stored count and status
        """
        run_id = uuid.uuid4().hex[:8]
        set_run_context(run_id)
        start = time.time()
        stats = PipelineStats()

        logger.info(
            "Pipeline started | queries=%d accounts=%d",
            len(self.config.search_queries), len(self.config.twitter_accounts),
        )

        try:
            existing = self.storage.list_existing_urls()

            with trace_operation("fetch", {"queries": len(self.config.search_queries)}) as span:
                search_results, timeline_batch = await self._fetch_all()
                stats.queries_failed = sum(1 for r in search_results if not r.ok)
                stats.accounts_failed = len(timeline_batch.failures)

                merged = [item for r in search_results for item in r.items]
                merged.extend(timeline_batch.items)
                stats.fetched = len(merged)
                span["fetched"] = stats.fetched

            new_items = dedupe(merged, existing)
            stats.new = len(new_items)
            logger.info(
                "Fetch complete | total=%d new=%d queries_failed=%d/%d accounts_failed=%d",
                stats.fetched, stats.new, stats.queries_failed, len(search_results), stats.accounts_failed,
            )

            scored: list[ScoredItem] = []
            if new_items:
                with trace_operation("score", {"items": len(new_items)}):
                    scored = await self._score(new_items, stats)

            with trace_operation("store", {"items": len(scored)}):
                stats.stored = self.storage.insert_scored_items(scored)

            outcome = decide_status(search_results, stats.stored)

        except asyncio.CancelledError:
            logger.info("Pipeline run cancelled")
            clear_context()
            raise
        except Exception as e:
            logger.error("Pipeline error | type=%s error=%s", type(e).__name__, e, exc_info=True)
            outcome = RunOutcome.error(f"{type(e).__name__}: {e}", items_stored=stats.stored)

        self._record(outcome)

        stats.duration = time.time() - start
        logger.info(
            "Pipeline done | status=%s duration=%.1fs fetched=%d new=%d stored=%d fallback=%d",
            outcome.status.value, stats.duration, stats.fetched, stats.new,
            stats.stored, stats.scored_fallback,
        )
        if outcome.error_detail:
            logger.warning("Run error | detail=%s", outcome.error_detail)
        clear_context()
        return outcome

    async def run_continuous(self) -> None:
        """Run the pipeline repeatedly, sleeping POLL_INTERVAL_SECONDS between runs."""
        run_count = 0
        total_stored = 0
        total_errors = 0

        logger.info("Starting continuous mode | interval=%ds", self.config.poll_interval_seconds)

        try:
            while True:
                run_count += 1
                outcome = await self.run_once()
                total_stored += outcome.items_stored
                if outcome.status is RunStatus.ERROR:
                    total_errors += 1

                logger.info(
                    "Run complete | run=%d total_stored=%d total_errors=%d",
                    run_count, total_stored, total_errors,
                )
                await asyncio.sleep(self.config.poll_interval_seconds)

        except asyncio.CancelledError:
            logger.info(
                "Pipeline stopped | runs=%d total_stored=%d total_errors=%d",
                run_count, total_stored, total_errors,
            )
            raise

    def close(self) -> None:
        """Clean up resources."""
        close = getattr(self.storage, "close", None)
        if close is not None:
            close()


async def run_fetch_job(config: Config) -> RunOutcome:
    """Run the pipeline once and return its outcome.

    Args:
        config: Application configuration
    """
    pipeline = Pipeline.from_config(config)
    try:
        return await pipeline.run_once()
    finally:
        pipeline.close()


async def run_continuous(config: Config) -> None:
    """Run the pipeline continuously.

    Args:
        config: Application configuration
    """
    pipeline = Pipeline.from_config(config)
    try:
        await pipeline.run_continuous()
    finally:
        pipeline.close()
