#!/usr/bin/env python3
"""Simple CLI for inspecting token progression locally"""

import argparse
import asyncio
from typing import Optional

import httpx

from tierwatch.config import settings
from tierwatch.core.progression import (
    TIER_ORDER,
    MemoryStore,
    ProgressionPolicy,
    ProgressionState,
    ProgressionTracker,
    build_store,
)
from tierwatch.logging_config import setup_logging
from tierwatch.providers import build_sources
from tierwatch.services.refresh import RefreshScheduler
from tierwatch.services.token_feed import SourceNormalizer, TokenAggregator

TIER_LABELS = {
    "gambleBox": "🎲 Gamble Box",
    "fastestRunner": "🏃 Fastest Runner",
    "highestGainer": "🚀 Highest Gainer",
}


def print_state(state: ProgressionState, limit: Optional[int] = None):
    """Pretty print the tier rosters"""
    for tier in TIER_ORDER:
        roster = state.roster(tier)
        print(f"\n{TIER_LABELS[tier.value]} ({len(roster)})")
        print("-" * 60)
        if not roster:
            print("   (empty)")
            continue
        for i, token in enumerate(roster[:limit] if limit else roster, 1):
            record = token.record
            symbol = record.symbol or record.identity[:8]
            cap = f"${record.market_cap_usd:,.0f}" if record.market_cap_usd is not None else "n/a"
            print(
                f"{i:2d}. {symbol:<10} {cap:>12}  "
                f"x{token.current_gain_multiple:.2f} (peak x{token.peak_gain_multiple:.2f})  "
                f"{token.days_since_first_observed:.2f}d"
            )

    if state.archive:
        print(f"\n🗄  Archive: {len(state.archive)} removed")
    if state.updated_at:
        print(f"\nUpdated: {state.updated_at.isoformat()}")


async def cli_cycle(dry_run: bool = False, limit: Optional[int] = None):
    """Run one refresh cycle against the configured sources"""
    store = MemoryStore() if dry_run else build_store(settings)
    tracker = ProgressionTracker(store, policy=ProgressionPolicy.from_settings(settings))
    await tracker.load()

    sources = build_sources(settings)
    aggregator = TokenAggregator(
        sources,
        normalizer=SourceNormalizer(sol_price_usd=settings.sol_price_usd),
        fetch_timeout_seconds=settings.fetch_timeout_seconds,
    )
    scheduler = RefreshScheduler(aggregator, tracker)

    print(f"🔄 Running cycle against: {', '.join(s.name for s in sources) or 'no sources'}")
    try:
        result = await scheduler.refetch()
    finally:
        for source in sources:
            await source.close()
        await store.close()

    for name, outcome in result.outcomes.items():
        mark = "✅" if outcome.ok else "❌"
        detail = f"{outcome.token_count} tokens" if outcome.ok else outcome.error
        print(f"   {mark} {name}: {detail} ({outcome.elapsed_ms} ms)")

    if not result.ok:
        print(f"\n⚠️  {scheduler.message or result.error}")
        return

    report = result.report
    admitted = sum(len(ids) for ids in report.admitted.values())
    print(f"\nAdmitted {admitted}, promoted {len(report.promoted)}, removed {len(report.removed)}")
    print_state(tracker.snapshot(), limit)


async def cli_show(limit: Optional[int] = None):
    """Print the persisted rosters"""
    store = build_store(settings)
    try:
        tracker = ProgressionTracker(store)
        state = await tracker.load()
    finally:
        await store.close()
    if state.is_empty():
        print("❌ No progression state saved yet")
        return
    print_state(state, limit)


async def cli_status(base_url: str):
    """Call a running service's health endpoint and print a summary."""
    async with httpx.AsyncClient() as client:
        response = await client.get(f"{base_url}/healthz", timeout=10)
        response.raise_for_status()
        data = response.json()

    scheduler = data.get("scheduler", {})
    push = data.get("push", {})
    print(f"Status:       {data.get('status')}")
    print(f"Data:         {scheduler.get('data_status')} {scheduler.get('message') or ''}")
    print(f"Cycles:       {scheduler.get('run_count')} (errors in a row: {scheduler.get('consecutive_errors')})")
    print(f"Next run:     {scheduler.get('next_run')}")
    print(f"Push feed:    {push.get('active') or ('REST only' if push.get('degraded') else 'none')}")
    for name, status in data.get("providers", {}).items():
        print(f" - {name}: {status.get('status')}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tierwatch CLI")
    subparsers = parser.add_subparsers(dest="command")

    cycle_parser = subparsers.add_parser("cycle", help="Run one refresh cycle now")
    cycle_parser.add_argument("--dry-run", action="store_true", help="Do not persist the result")
    cycle_parser.add_argument("--limit", type=int, help="Tokens to print per tier")

    show_parser = subparsers.add_parser("show", help="Print the persisted rosters")
    show_parser.add_argument("--limit", type=int, help="Tokens to print per tier")

    status_parser = subparsers.add_parser("status", help="Query a running service")
    status_parser.add_argument("--url", default=f"http://{settings.host}:{settings.port}", help="Service base URL")

    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser


async def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    setup_logging(args.log_level or "WARNING")
    command = args.command.lower()

    if command == "cycle":
        if args.limit is not None and args.limit <= 0:
            raise ValueError("Limit must be positive")
        await cli_cycle(args.dry_run, args.limit)

    elif command == "show":
        await cli_show(args.limit)

    elif command == "status":
        await cli_status(args.url.rstrip("/"))

    else:
        print(f"❌ Unknown command: {command}")
        parser.print_help()


if __name__ == "__main__":
    asyncio.run(main())
