"""CLI entry point for the catallax client."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from catallax.api.service import CatallaxService
from catallax.config import load_config
from catallax.interfaces.query import EventQuery
from catallax.models.config import ClientConfig
from catallax.models.records import ResolutionType, TaskStatus
from catallax.models.snapshots import (
    arbiter_snapshot,
    conclusion_snapshot,
    format_sats,
    goal_snapshot,
    task_snapshot,
    to_dict,
)
from catallax.nostr.relay import RelayPool
from catallax.policy.arbiters import (
    ArbiterFilterState,
    ArbiterSortField,
    accepts_amount,
    apply_arbiter_filters,
    matches_categories,
)
from catallax.storage.sqlite import SQLiteEventCache


def _short(pubkey: str | None) -> str:
    return f"{pubkey[:8]}..{pubkey[-4:]}" if pubkey else "-"


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2))


def _require_relays(cfg: ClientConfig) -> None:
    """Exit with error if no relays are configured."""
    if not cfg.relays:
        click.echo("Error: No relays configured.", err=True)
        click.echo("Set CATALLAX_RELAYS or [relays] urls in config.", err=True)
        sys.exit(1)


def _require_found(obj, what: str) -> None:
    """Exit with error if a lookup came back empty."""
    if obj is None:
        click.echo(f"Error: {what} not found.", err=True)
        sys.exit(1)


def _make_query(cfg: ClientConfig, relays: list[str] | None = None) -> EventQuery:
    if relays is None:
        return RelayPool(cfg.relays, cfg.query_timeout)
    return RelayPool(relays, cfg.receipt_timeout)


async def _with_service(cfg: ClientConfig, fn):
    """Run ``fn(service)`` with the event cache opened around it."""
    store = None
    if cfg.cache_enabled:
        store = SQLiteEventCache(cfg.db_path)
        await store.initialize()
    service = CatallaxService(
        _make_query(cfg),
        store=store,
        config=cfg,
        receipt_query_factory=lambda relays: _make_query(cfg, relays),
    )
    try:
        return await fn(service)
    finally:
        if store is not None:
            await store.close()


def _load(ctx: click.Context) -> ClientConfig:
    cfg = load_config(ctx.obj["config_path"])
    _require_relays(cfg)
    return cfg


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """catallax - Nostr contract work client (arbiters, tasks, crowdfunding)."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    if verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, load_config(config_path).log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show client configuration."""
    cfg = load_config(ctx.obj["config_path"])

    cached = None
    if cfg.cache_enabled:
        async def _count():
            store = SQLiteEventCache(cfg.db_path)
            await store.initialize()
            try:
                return await store.count_events()
            finally:
                await store.close()

        cached = asyncio.run(_count())

    if as_json:
        data = to_dict(cfg)
        data["cached_events"] = cached
        _echo_json(data)
        return

    click.echo(f"Relays:     {', '.join(cfg.relays) or '(none)'}")
    click.echo(f"Timeout:    {cfg.query_timeout:g}s (receipts {cfg.receipt_timeout:g}s)")
    click.echo(f"Limits:     {cfg.query_limit} events, {cfg.receipt_limit} receipts")
    click.echo(f"DB path:    {cfg.db_path}")
    click.echo(f"Cache:      {'enabled' if cfg.cache_enabled else 'disabled'}")
    if cached is not None:
        click.echo(f"Cached:     {cached} events")


# ── Arbiters ───────────────────────────────────────────


@cli.command()
@click.option(
    "--sort", "sort_field", default="date",
    type=click.Choice([f.value for f in ArbiterSortField]), help="Sort field",
)
@click.option("--asc", is_flag=True, help="Sort ascending")
@click.option("--amount", type=int, default=None, help="Only arbiters accepting this many sats")
@click.option("--category", "categories", multiple=True, help="Only arbiters covering a category")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def arbiters(
    ctx: click.Context,
    sort_field: str,
    asc: bool,
    amount: int | None,
    categories: tuple[str, ...],
    as_json: bool,
) -> None:
    """List arbiter services."""
    cfg = _load(ctx)

    async def _arbiters(service: CatallaxService):
        found = await service.get_arbiters()
        experience = await service.get_arbiter_experience()
        return found, experience

    found, experience = asyncio.run(_with_service(cfg, _arbiters))
    state = ArbiterFilterState(sort_field=ArbiterSortField(sort_field), descending=not asc)
    ordered = apply_arbiter_filters(found, state, experience=experience)
    if amount is not None:
        ordered = [a for a in ordered if accepts_amount(a, amount)]
    if categories:
        ordered = [a for a in ordered if matches_categories(a, list(categories))]

    snapshots = [arbiter_snapshot(a, experience.get(a.arbiter_pubkey, 0)) for a in ordered]
    if as_json:
        _echo_json([to_dict(s) for s in snapshots])
        return

    if not snapshots:
        click.echo("No arbiters found.")
        return
    click.echo(f"{'Name':<28} {'Fee':<12} {'Exp':>4}  {'Arbiter':<14} Categories")
    click.echo("-" * 80)
    for s in snapshots:
        click.echo(
            f"{s.name[:28]:<28} {s.fee:<12} {s.experience:>4}  "
            f"{_short(s.arbiter_pubkey):<14} {', '.join(s.categories)}"
        )


# ── Tasks ──────────────────────────────────────────────


@cli.command()
@click.option(
    "--status", "status_filter", default=None,
    type=click.Choice([s.value for s in TaskStatus]), help="Only tasks in this status",
)
@click.option("--patron", default=None, help="Only tasks by this patron pubkey")
@click.option("--worker", default=None, help="Only tasks assigned to this worker")
@click.option("--arbiter", default=None, help="Only tasks under this arbiter")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def tasks(
    ctx: click.Context,
    status_filter: str | None,
    patron: str | None,
    worker: str | None,
    arbiter: str | None,
    as_json: bool,
) -> None:
    """List current tasks."""
    cfg = _load(ctx)

    found = asyncio.run(_with_service(cfg, lambda service: service.get_tasks(status_filter)))
    if patron:
        found = [t for t in found if t.patron_pubkey == patron]
    if worker:
        found = [t for t in found if t.worker_pubkey == worker]
    if arbiter:
        found = [t for t in found if t.arbiter_pubkey == arbiter]

    snapshots = [task_snapshot(t) for t in found]
    if as_json:
        _echo_json([to_dict(s) for s in snapshots])
        return

    if not snapshots:
        click.echo("No tasks found.")
        return
    click.echo(f"{'Title':<32} {'Status':<12} {'Amount':>14}  {'Funding':<12} Patron")
    click.echo("-" * 86)
    for s in snapshots:
        click.echo(
            f"{s.title[:32]:<32} {s.status:<12} {s.amount:>14}  "
            f"{s.funding_type:<12} {_short(s.patron_pubkey)}"
        )


@cli.command()
@click.argument("patron")
@click.argument("d")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def task(ctx: click.Context, patron: str, d: str, as_json: bool) -> None:
    """Show one task and its conclusions."""
    cfg = _load(ctx)

    async def _task(service: CatallaxService):
        found = await service.get_task(patron, d)
        conclusions = await service.get_conclusions_for_task(found) if found else []
        return found, conclusions

    found, conclusions = asyncio.run(_with_service(cfg, _task))
    _require_found(found, f"Task {patron}:{d}")

    snap = task_snapshot(found)
    concluded = [conclusion_snapshot(c) for c in conclusions]
    if as_json:
        data = to_dict(snap)
        data["conclusions"] = [to_dict(c) for c in concluded]
        _echo_json(data)
        return

    click.echo(f"Title:      {snap.title}")
    click.echo(f"Address:    {snap.address}")
    click.echo(f"Status:     {snap.status}")
    click.echo(f"Amount:     {snap.amount}")
    click.echo(f"Funding:    {snap.funding_type}")
    click.echo(f"Patron:     {snap.patron_pubkey}")
    click.echo(f"Arbiter:    {snap.arbiter_pubkey or '(none)'}")
    click.echo(f"Worker:     {snap.worker_pubkey or '(none)'}")
    if snap.goal_id:
        click.echo(f"Goal:       {snap.goal_id}")
    if snap.zap_receipt_id:
        click.echo(f"Zap proof:  {snap.zap_receipt_id}")
    for c in concluded:
        click.echo(f"Concluded:  {c.resolution} - {c.details}")


# ── Funding ────────────────────────────────────────────


@cli.command()
@click.argument("goal_id")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def goal(ctx: click.Context, goal_id: str, as_json: bool) -> None:
    """Show crowdfunding progress for a zap goal."""
    cfg = _load(ctx)

    state = asyncio.run(_with_service(cfg, lambda service: service.get_goal(goal_id)))
    _require_found(state, f"Goal {goal_id}")

    snap = goal_snapshot(goal_id, state.progress, len(state.receipts))
    if as_json:
        _echo_json(to_dict(snap))
        return

    click.echo(f"Goal:       {goal_id}")
    click.echo(f"Raised:     {snap.raised} of {snap.target} ({snap.percent_complete:.1f}%)")
    click.echo(f"Met:        {'yes' if snap.is_goal_met else 'no'}")
    click.echo(f"Receipts:   {snap.receipts_seen}")
    for c in snap.contributors:
        click.echo(f"  {_short(c.pubkey):<14} {c.amount:>14}  {c.percentage * 100:5.1f}%")


# ── Settlement ─────────────────────────────────────────


def _print_settlement(snap, as_json: bool) -> None:
    if as_json:
        _echo_json(to_dict(snap))
        return
    title = f"{snap.kind.capitalize()} for {snap.task_address}"
    if snap.reason:
        title += f" ({snap.reason})"
    click.echo(title)
    for line in snap.splits:
        click.echo(f"  {_short(line.recipient_pubkey):<14} {line.amount:>14}  {line.purpose}")
    click.echo(f"Total:      {format_sats(snap.total_sats)}")
    if snap.unallocated_sats:
        click.echo(f"Unallocated: {format_sats(snap.unallocated_sats)}")


@cli.command()
@click.argument("patron")
@click.argument("d")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def payout(ctx: click.Context, patron: str, d: str, as_json: bool) -> None:
    """Compute the payout split for a task (worker + arbiter fee)."""
    cfg = _load(ctx)

    async def _payout(service: CatallaxService):
        found = await service.get_task(patron, d)
        if found is None:
            return None, None
        return found, await service.get_payout_splits(found)

    found, snap = asyncio.run(_with_service(cfg, _payout))
    _require_found(found, f"Task {patron}:{d}")
    if snap is None:
        click.echo(f"Error: Task {d} has no worker assigned.", err=True)
        sys.exit(1)
    _print_settlement(snap, as_json)


@cli.command()
@click.argument("patron")
@click.argument("d")
@click.option(
    "--reason", default=ResolutionType.CANCELLED.value,
    type=click.Choice([r.value for r in ResolutionType if r is not ResolutionType.SUCCESSFUL]),
    help="Why the task is being refunded",
)
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
@click.pass_context
def refund(ctx: click.Context, patron: str, d: str, reason: str, as_json: bool) -> None:
    """Compute refunds for a task (proportional for crowdfunded tasks)."""
    cfg = _load(ctx)

    async def _refund(service: CatallaxService):
        found = await service.get_task(patron, d)
        if found is None:
            return None, None
        return found, await service.get_refund_splits(found, reason)

    found, snap = asyncio.run(_with_service(cfg, _refund))
    _require_found(found, f"Task {patron}:{d}")
    _print_settlement(snap, as_json)
