#!/usr/bin/env python3
"""
synapedia.py — Synapedia linking CLI.

Runs fully locally: talks to PostgreSQL directly (or reads a JSON seed
file), no API server needed. Feature flags are ignored here: the CLI is an
editorial/admin tool and always runs the engines.

DB configuration: environment variables with the SYNAPEDIA_ prefix
or a .env file (e.g. SYNAPEDIA_DB_URL=postgresql://...).
--seed PATH (or SYNAPEDIA_SEED_PATH) switches to a JSON seed file.

Subcommands:
    autolink    — annotate markdown/MDX text with entity links
    rank        — rank affiliate provider links for an entity
    lookup      — show the entity behind a name/slug/synonym
    dictionary  — dictionary and autolink candidate statistics
    health      — check the catalog backend

Usage:
    python synapedia.py --seed seed.json autolink --text "Psilocybin und MDMA."
    python synapedia.py autolink --file article.mdx --min-score 60
    python synapedia.py rank ent-mdma --region DE --limit 5 --require-verified
    python synapedia.py lookup ecstasy
    python synapedia.py dictionary
    python synapedia.py health
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

from rich import box
from rich.console import Console
from rich.table import Table


# -- helpers ---------------------------------------------------------------

_CONSOLE: Console | None = None


def _console() -> Console:
    global _CONSOLE
    if _CONSOLE is None:
        _CONSOLE = Console(highlight=False, stderr=True)
    return _CONSOLE


def _short(value: Any, limit: int = 64) -> str:
    s = str(value).replace("\n", " ").strip()
    if len(s) <= limit:
        return s
    return s[: limit - 3] + "..."


def _dsn(db_url: str) -> str:
    return db_url.replace("postgresql+asyncpg://", "postgresql://", 1)


def _read_text(args: argparse.Namespace) -> str:
    if getattr(args, "file", None):
        try:
            return Path(args.file).read_text(encoding="utf-8")
        except OSError as e:
            print(f"Error reading file: {e}", file=sys.stderr)
            sys.exit(1)
    text = getattr(args, "text", None) or sys.stdin.read()
    if not text.strip():
        print("Error: pass text via --text, --file or stdin", file=sys.stderr)
        sys.exit(1)
    return text


@asynccontextmanager
async def _backend(args: argparse.Namespace) -> AsyncIterator[tuple[Any, Any]]:
    """Yields (entity_catalog, affiliate_store) for the configured backend."""
    from config import Settings

    settings = Settings()
    seed = args.seed or settings.seed_path
    if seed:
        from adapters.json_seed import JsonSeedAffiliateStore, JsonSeedEntityCatalog

        yield JsonSeedEntityCatalog(seed_path=Path(seed)), JsonSeedAffiliateStore(seed_path=Path(seed))
        return

    from adapters.affiliate_store.postgres_affiliate_store import PostgresAffiliateStore
    from adapters.entity_catalog.postgres_entity_catalog import PostgresEntityCatalog

    dsn = _dsn(settings.db_url)
    catalog = await PostgresEntityCatalog.create(dsn)
    try:
        store = await PostgresAffiliateStore.create(dsn)
        try:
            yield catalog, store
        finally:
            await store.close()
    finally:
        await catalog.close()


async def _load_dictionary(catalog: Any) -> dict:
    from adapters.entity_dictionary import build_entity_dictionary
    from contracts import CatalogLoadError

    try:
        entities = await catalog.load_entities()
    except CatalogLoadError as exc:
        print(f"Catalog error: {exc}", file=sys.stderr)
        sys.exit(1)
    return build_entity_dictionary(entities)


# -- subcommands -----------------------------------------------------------

async def _autolink(args: argparse.Namespace) -> None:
    from adapters.autolinker import autolink_entities
    from config import Settings

    text = _read_text(args)
    config = Settings().autolink_config()
    if args.min_score is not None:
        config = config.model_copy(update={"min_evidence_score": args.min_score})
    if args.allow_high_risk:
        config = config.model_copy(update={"allow_high_risk": True})

    async with _backend(args) as (catalog, _store):
        dictionary = await _load_dictionary(catalog)

    result = autolink_entities(text, dictionary, config)
    sys.stdout.write(result.content)
    if not result.content.endswith("\n"):
        sys.stdout.write("\n")

    by_id = {e.entity_id: e for e in dictionary.values()}
    table = Table(title=f"Linked entities [{len(result.linked_entity_ids)}]", box=box.ASCII)
    table.add_column("#", justify="right", no_wrap=True)
    table.add_column("Entity ID", no_wrap=True, style="cyan")
    table.add_column("Name")
    table.add_column("Slug", no_wrap=True)
    table.add_column("Evidence", justify="right", no_wrap=True)
    for idx, entity_id in enumerate(result.linked_entity_ids, 1):
        e = by_id[entity_id]
        table.add_row(str(idx), entity_id, _short(e.name, 40), e.slug, str(e.evidence_score))
    _console().print(table)


async def _rank(args: argparse.Namespace) -> None:
    from adapters.affiliate_router import get_best_affiliate_links, provider_badges
    from contracts import AffiliateLinkQuery, CatalogLoadError

    query = AffiliateLinkQuery(
        entity_id=args.entity_id,
        region=args.region,
        limit=args.limit,
        min_quality=args.min_quality,
        require_verified=args.require_verified,
    )
    async with _backend(args) as (_catalog, store):
        try:
            providers = await store.list_providers()
            links = await store.list_links(args.entity_id)
        except CatalogLoadError as exc:
            print(f"Provider store error: {exc}", file=sys.stderr)
            sys.exit(1)

    ranked = get_best_affiliate_links(query, providers, links)
    if not ranked:
        print("No promotable links for this entity.")
        return

    table = Table(
        title=f"Affiliate links for {args.entity_id} (region={args.region or '-'})",
        box=box.ASCII,
    )
    table.add_column("#", justify="right", no_wrap=True)
    table.add_column("Score", justify="right", no_wrap=True, style="bold cyan")
    table.add_column("Provider")
    table.add_column("Region", no_wrap=True)
    table.add_column("Badges")
    table.add_column("URL")
    for idx, r in enumerate(ranked, 1):
        table.add_row(
            str(idx),
            str(r.score),
            _short(r.custom_label or r.provider.name, 32),
            r.provider.region,
            ", ".join(provider_badges(r.provider)) or "-",
            _short(r.affiliate_url, 60),
        )
    _console().print(table)


async def _lookup(args: argparse.Namespace) -> None:
    async with _backend(args) as (catalog, _store):
        dictionary = await _load_dictionary(catalog)

    key = args.term.strip().lower()
    entity = dictionary.get(key)
    if entity is None:
        print(f"No entity for term {args.term!r}", file=sys.stderr)
        sys.exit(1)

    table = Table(title=f"Lookup: {key}", box=box.ASCII, show_header=False, pad_edge=False)
    table.add_column("Key", no_wrap=True, style="bold cyan")
    table.add_column("Value")
    for field, value in entity.model_dump(mode="json").items():
        if isinstance(value, list):
            value = ", ".join(value) or "-"
        table.add_row(field, str(value))
    _console().print(table)


async def _dictionary(args: argparse.Namespace) -> None:
    from adapters.autolinker import build_candidate_list
    from config import Settings

    async with _backend(args) as (catalog, _store):
        dictionary = await _load_dictionary(catalog)

    candidates = build_candidate_list(dictionary, Settings().autolink_config())
    table = Table(title="Entity dictionary", box=box.ASCII, show_header=False, pad_edge=False)
    table.add_column("Key", no_wrap=True, style="bold cyan")
    table.add_column("Value", justify="right")
    table.add_row("lookup keys", str(len(dictionary)))
    table.add_row("entities", str(len({e.entity_id for e in dictionary.values()})))
    table.add_row("autolink candidates", str(len(candidates)))
    _console().print(table)

    if args.verbose:
        ct = Table(title="Autolink candidates (scan order)", box=box.ASCII)
        ct.add_column("Term")
        ct.add_column("Entity ID", style="cyan", no_wrap=True)
        ct.add_column("Risk", no_wrap=True)
        for c in candidates:
            ct.add_row(c.term, c.entity.entity_id, c.entity.risk_level.value)
        _console().print(ct)


async def _health(args: argparse.Namespace) -> None:
    try:
        async with _backend(args) as (catalog, _store):
            entities = await catalog.load_entities()
    except Exception as exc:
        print("status:   error", file=sys.stderr)
        print(f"catalog:  {exc}", file=sys.stderr)
        sys.exit(1)
    print("status:   ok")
    print(f"entities: {len(entities)}")


# -- main ------------------------------------------------------------------

def main() -> None:
    parser = argparse.ArgumentParser(
        prog="synapedia",
        description="Synapedia linking CLI (local, no API server)",
    )
    parser.add_argument("--seed", metavar="PATH", help="JSON seed file instead of PostgreSQL")
    sub = parser.add_subparsers(dest="command", required=True)

    # autolink
    p = sub.add_parser("autolink", help="Annotate markdown/MDX text with entity links")
    p.add_argument("--text", "-t", help="Source text (or stdin)")
    p.add_argument("--file", "-f", help="Path to a markdown/MDX file")
    p.add_argument("--min-score", type=int, default=None, metavar="N",
                   help="Override the minimum evidence score (0-100)")
    p.add_argument("--allow-high-risk", action="store_true",
                   help="Link high-risk entities without whitelisting")

    # rank
    p = sub.add_parser("rank", help="Rank affiliate provider links for an entity")
    p.add_argument("entity_id", help="Entity ID")
    p.add_argument("--region", "-r", default=None, help="Reader region, e.g. EU or DE")
    p.add_argument("--limit", "-n", type=int, default=3, metavar="N")
    p.add_argument("--min-quality", type=int, default=0, metavar="N")
    p.add_argument("--require-verified", action="store_true")

    # lookup
    p = sub.add_parser("lookup", help="Show the entity behind a name/slug/synonym")
    p.add_argument("term")

    # dictionary
    p = sub.add_parser("dictionary", help="Dictionary and autolink candidate statistics")
    p.add_argument("--verbose", "-v", action="store_true", help="List autolink candidates")

    # health
    sub.add_parser("health", help="Check the catalog backend")

    args = parser.parse_args()

    async_cmds = {
        "autolink":   _autolink,
        "rank":       _rank,
        "lookup":     _lookup,
        "dictionary": _dictionary,
        "health":     _health,
    }
    asyncio.run(async_cmds[args.command](args))


if __name__ == "__main__":
    main()
