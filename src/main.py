# src/main.py — v1
"""CLI entry point — list, resolve, aggregate and reset commands.

Usage:
    iscadmin list <collection> [--all] [--filters QUERY]
    iscadmin resolve <collection> <name>
    iscadmin aggregate <source> [--entitlements] [--disable-optimization]
    iscadmin reset <source> [--accounts | --entitlements] [-y]

The tenant comes from ``--tenant`` or ISC_TENANT; the bearer token from
ISC_ACCESS_TOKEN.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from iscadmin.version import __version__

logger = logging.getLogger(__name__)

PAGED_COLLECTIONS = ("access-profiles", "roles")
LISTED_COLLECTIONS = (
    "sources",
    "transforms",
    "workflows",
    "connector-rules",
    "service-desk-integrations",
    "identity-profiles",
)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args)
    except Exception as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(_run(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="iscadmin",
        description=f"iscadmin v{__version__} — identity tenant administration",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--tenant", default=None,
        help="Tenant name (default: ISC_TENANT)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- list ---
    p_list = subparsers.add_parser("list", help="List a collection")
    p_list.add_argument(
        "collection", choices=PAGED_COLLECTIONS + LISTED_COLLECTIONS,
        help="Collection to list",
    )
    p_list.add_argument(
        "--all", action="store_true",
        help="Page through the whole collection (paged collections only)",
    )
    p_list.add_argument(
        "--filters", default=None,
        help="Search query for paged collections (default: ISC_DEFAULT_FILTERS)",
    )
    p_list.set_defaults(func=_cmd_list)

    # --- resolve ---
    p_resolve = subparsers.add_parser("resolve", help="Print the id of a named resource")
    p_resolve.add_argument("collection", choices=PAGED_COLLECTIONS)
    p_resolve.add_argument("names", nargs="+", help="Resource name(s)")
    p_resolve.set_defaults(func=_cmd_resolve)

    # --- aggregate ---
    p_aggregate = subparsers.add_parser("aggregate", help="Aggregate a source")
    p_aggregate.add_argument("source", help="Source name")
    p_aggregate.add_argument(
        "--entitlements", action="store_true",
        help="Aggregate entitlements instead of accounts",
    )
    p_aggregate.add_argument(
        "--disable-optimization", action="store_true",
        help="Force a full account aggregation",
    )
    p_aggregate.set_defaults(func=_cmd_aggregate)

    # --- reset ---
    p_reset = subparsers.add_parser(
        "reset", help="Reset a source (accounts, then entitlements)",
    )
    p_reset.add_argument("source", help="Source name")
    scope = p_reset.add_mutually_exclusive_group()
    scope.add_argument("--accounts", action="store_true", help="Only reset accounts")
    scope.add_argument("--entitlements", action="store_true", help="Only reset entitlements")
    p_reset.add_argument(
        "-y", "--yes", action="store_true",
        help="Do not ask for confirmation",
    )
    p_reset.set_defaults(func=_cmd_reset)

    return parser


def _load_settings(args: argparse.Namespace):
    from iscadmin.config.settings import load_settings

    overrides: dict[str, object] = {}
    if args.tenant:
        overrides["tenant"] = args.tenant
    settings = load_settings(**overrides)
    if not settings.tenant and not settings.base_url:
        raise ValueError("no tenant given (use --tenant or ISC_TENANT)")
    return settings


async def _run(args: argparse.Namespace, settings) -> int:
    """Open a session for the configured tenant and run the command in it."""
    from iscadmin.core.models import Tenant
    from iscadmin.logging.context import set_tenant_context
    from iscadmin.session.tenant_session import SessionRegistry

    tenant = Tenant(
        id=settings.tenant or settings.base_url,
        name=settings.tenant,
        display_name=settings.tenant_display_name,
    )
    set_tenant_context(tenant.label)

    registry = SessionRegistry(settings)
    session = registry.open(tenant)
    try:
        return await args.func(args, session)
    finally:
        await registry.close_all()


async def _cmd_list(args: argparse.Namespace, session) -> int:
    """Print one name per line."""
    if args.collection in PAGED_COLLECTIONS:
        from iscadmin.paging.loader import EmptyMarker, LoadMoreMarker, PaginatedCollectionLoader

        client = session.client
        collection = args.collection

        async def fetch(filters: str, limit: int, offset: int, need_total: bool):
            return await client.fetch_page(collection, filters, limit, offset, need_total)

        loader = PaginatedCollectionLoader(
            fetch,
            page_size=session.settings.page_size,
            filters=args.filters or session.settings.default_filters,
            name=collection,
        )
        entries = await loader.load_more()
        while args.all and loader.has_more:
            entries = await loader.load_more()

        for entry in entries:
            if isinstance(entry, EmptyMarker):
                print(entry.label)
            elif isinstance(entry, LoadMoreMarker):
                print(f"... {loader.total - len(loader.items)} more (use --all)")
            else:
                print(entry.get("name", ""))
        return 0

    for resource in await session.client.list_resources(args.collection):
        print(resource.name)
    return 0


async def _cmd_resolve(args: argparse.Namespace, session) -> int:
    """Resolve names concurrently through the session's name cache."""
    from iscadmin.cache.single_flight import LookupNotFound

    cache = session.access_profile_ids if args.collection == "access-profiles" else session.role_ids
    results = await asyncio.gather(
        *(cache.get(name) for name in args.names), return_exceptions=True
    )
    status = 0
    for name, result in zip(args.names, results):
        if isinstance(result, LookupNotFound):
            print(f"{name}\t<not found>")
            status = 1
        elif isinstance(result, BaseException):
            raise result
        else:
            print(f"{name}\t{result}")
    return status


async def _find_source(session, name: str):
    from iscadmin.core.models import Resource

    source_id = await session.client.resolve_id_by_name("sources", name)
    return Resource(id=source_id, name=name, type="source")


async def _cmd_aggregate(args: argparse.Namespace, session) -> int:
    from iscadmin.jobs.orchestrator import SourceAdministrator
    from iscadmin.jobs.presenter import ConsolePresenter

    source = await _find_source(session, args.source)
    admin = SourceAdministrator(session, ConsolePresenter(assume_yes=True))
    if args.entitlements:
        job = await admin.aggregate_entitlements(source)
    else:
        job = await admin.aggregate_accounts(source, args.disable_optimization)
    return _exit_code(job)


async def _cmd_reset(args: argparse.Namespace, session) -> int:
    from iscadmin.jobs.orchestrator import SourceAdministrator
    from iscadmin.jobs.presenter import ConsolePresenter

    source = await _find_source(session, args.source)
    admin = SourceAdministrator(session, ConsolePresenter(assume_yes=args.yes))
    if args.accounts:
        job = await admin.reset_accounts(source)
    elif args.entitlements:
        job = await admin.reset_entitlements(source)
    else:
        job = await admin.reset_source(source)
    return _exit_code(job)


def _exit_code(job) -> int:
    """0 on success or warning, 1 on failure, 2 when nothing ran to completion."""
    from iscadmin.core.models import JobStatus

    if job is None:
        return 2
    return 1 if job.status not in (JobStatus.SUCCESS, JobStatus.WARNING) else 0


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from iscadmin.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
