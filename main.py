#!/usr/bin/env python3
"""The Signal: AI news ingestion pipeline.

This CLI fetches AI news from search queries and monitored X/Twitter
accounts, scores and summarizes new stories with an LLM, and stores
them in SQLite together with a run log.

Commands:
    run         Execute the ingestion pipeline (once or continuously)
    status      Show configuration and database statistics
    recent      Display the top recent stories
    logs        Display the run log

Examples:
    python main.py run                    # Single run
    python main.py run -c                 # Continuous polling
    python main.py run -c --interval 600  # Poll every 10 minutes
    python main.py status                 # Show config
    python main.py recent --days 1 --category Research
    python main.py logs --limit 20

Environment:
    PERPLEXITY_API_KEY, SOCIALDATA_API_KEY, GEMINI_API_KEY
    See config.py for all configuration options
"""

import argparse
import asyncio
import json
import logging
import sys

from config import Config
from database import Database
from models.category import Category
from models.run import RunStatus
from observability.logging import setup_logging

logger = logging.getLogger(__name__)


def cmd_run(args: argparse.Namespace, config: Config) -> int:
    """Execute the ingestion pipeline.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success, 1 when the run outcome is an error)
    """
    from pipeline import run_continuous, run_fetch_job

    if args.interval:
        config.poll_interval_seconds = args.interval

    for variable in config.missing_credentials():
        logger.warning("Credential not set; dependent stage will degrade | variable=%s", variable)

    try:
        if args.continuous:
            logger.info("Starting continuous mode...")
            asyncio.run(run_continuous(config))
            return 0

        outcome = asyncio.run(run_fetch_job(config))
        logger.info("Run complete | outcome=%s", json.dumps(outcome.to_dict()))
        return 1 if outcome.status is RunStatus.ERROR else 0
    except KeyboardInterrupt:
        logger.info("Stopped by user (Ctrl+C)")
        return 130  # Standard exit code for SIGINT


def cmd_status(args: argparse.Namespace, config: Config) -> int:
    """Display configuration and database statistics."""
    with Database(config.db_path) as db:
        db_stats = db.stats()

    status = {
        "config": {
            "perplexity_model": config.perplexity_model,
            "scorer_model": config.scorer_model,
            "search_queries": len(config.search_queries),
            "twitter_accounts": len(config.twitter_accounts),
            "poll_interval": config.poll_interval_seconds,
            "missing_credentials": config.missing_credentials(),
            "enable_logfire": config.enable_logfire,
        },
        "database": {
            "path": str(config.db_path),
            "total_stories": db_stats["total"],
            "runs": db_stats["runs"],
            "last_run": db_stats["last_run"],
        },
    }

    print(json.dumps(status, indent=2, default=str))
    return 0


def cmd_recent(args: argparse.Namespace, config: Config) -> int:
    """Display the highest-scored recent stories.

    Args:
        args: Parsed command line arguments
        config: Application configuration

    Returns:
        Exit code (0 for success)
    """
    with Database(config.db_path) as db:
        stories = db.top_stories(days=args.days, category=args.category, limit=args.limit)

    if not stories:
        print(f"No stories in the last {args.days} days.")
        return 0

    label = f" in {args.category}" if args.category else ""
    print(f"\n=== Top Stories{label} (last {args.days} days) ===\n")

    for story in stories:
        print(f"[{story['score']:.1f}] {story['title']}")
        print(f"   Category: {story['category']}")
        print(f"   Source: {story['source_domain']}  {story['url']}")
        published = story.get("published_at")
        if published:
            print(f"   Published: {published.strftime('%Y-%m-%d %H:%M')}")
        for bullet in story["bullets"]:
            print(f"   - {bullet}")
        print()

    return 0


def cmd_logs(args: argparse.Namespace, config: Config) -> int:
    """Display the most recent run log entries."""
    with Database(config.db_path) as db:
        logs = db.recent_run_logs(limit=args.limit)

    if not logs:
        print("No runs recorded yet.")
        return 0

    for entry in logs:
        print(json.dumps(entry))
    return 0


def main() -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        description="The Signal: AI news ingestion pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Run the ingestion pipeline")
    run_parser.add_argument(
        "-c", "--continuous",
        action="store_true",
        help="Run continuously with polling",
    )
    run_parser.add_argument(
        "--interval",
        type=int,
        help="Polling interval in seconds (overrides POLL_INTERVAL_SECONDS)",
    )

    # status command
    subparsers.add_parser("status", help="Show configuration and statistics")

    # recent command
    recent_parser = subparsers.add_parser("recent", help="Show top recent stories")
    recent_parser.add_argument(
        "--days",
        type=int,
        default=3,
        help="Look back this many days (default: 3)",
    )
    recent_parser.add_argument(
        "--category",
        choices=[c.value for c in Category],
        help="Only show one category",
    )
    recent_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum stories to show (default: 10)",
    )

    # logs command
    logs_parser = subparsers.add_parser("logs", help="Show recent run log entries")
    logs_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum entries to show (default: 10)",
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = Config.load()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    # Setup logging
    setup_logging(config, verbose=args.verbose)

    # Validate configuration for commands that need it
    if args.command == "run":
        error = config.validate()
        if error:
            print(f"Configuration error: {error}", file=sys.stderr)
            return 1

    # Route to command handler
    commands = {
        "run": cmd_run,
        "status": cmd_status,
        "recent": cmd_recent,
        "logs": cmd_logs,
    }

    if args.command in commands:
        try:
            return commands[args.command](args, config)
        except Exception as e:
            logger.error("Command failed | cmd=%s error=%s", args.command, e, exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
