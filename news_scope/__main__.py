"""CLI entrypoint for news_scope."""

from __future__ import annotations

import argparse
import asyncio
import json

from news_scope.logging_config import setup_logging
from news_scope.models import ScopePreview


def main() -> None:
    setup_logging()

    parser = argparse.ArgumentParser(prog="news-scope")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve")
    sub.add_parser("migrate")

    preview_parser = sub.add_parser("preview")
    preview_parser.add_argument("query")
    preview_parser.add_argument("--seed", help="JSONL gazetteer seed (skips Postgres)")
    preview_parser.add_argument("--diagnostics", action="store_true")

    try_parser = sub.add_parser("try")
    try_parser.add_argument("query", nargs="?")
    try_parser.add_argument("--seed", help="JSONL gazetteer seed (skips Postgres)")

    args = parser.parse_args()

    if args.command == "serve":
        _serve()
    elif args.command == "migrate":
        asyncio.run(_migrate())
    elif args.command == "preview":
        asyncio.run(_preview_once(args.query, args.seed, args.diagnostics))
    elif args.command == "try":
        asyncio.run(_try_mode(args.query, args.seed))


def _serve() -> None:
    import uvicorn

    from news_scope.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "news_scope.api:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=(settings.env == "development"),
        log_level=settings.log_level.lower(),
    )


async def _migrate() -> None:
    from news_scope.db import close_pool, get_pool, run_migrations

    await get_pool()
    await run_migrations()
    await close_pool()
    print("Migrations applied successfully.")


def _build_resolver(seed: str | None):
    from news_scope.resolver import ScopeResolver
    from news_scope.search import build_search_services

    backend = "gazetteer" if seed else None
    countries, cities = build_search_services(backend=backend, seed_path=seed)
    return ScopeResolver(countries, cities)


async def _close(seed: str | None) -> None:
    if seed is None:
        from news_scope.db import close_pool

        await close_pool()


async def _preview_once(query: str, seed: str | None, diagnostics: bool) -> None:
    resolver = _build_resolver(seed)
    try:
        preview = await resolver.preview(query)
    finally:
        await _close(seed)
    exclude = None if diagnostics else {"diagnostics"}
    print(json.dumps(preview.model_dump(mode="json", exclude=exclude), ensure_ascii=False, indent=2))


async def _try_mode(initial_query: str | None, seed: str | None) -> None:
    resolver = _build_resolver(seed)
    try:
        if initial_query:
            _print_cli_result(await resolver.preview(initial_query))
            return

        print("Scope preview interactive")
        print("Type a query like 'san jose costa rica sports'. Type 'quit' to exit.")
        while True:
            query = input("query> ").strip()
            if not query:
                continue
            if query.lower() in {"quit", "exit", "q"}:
                break
            _print_cli_result(await resolver.preview(query))
    finally:
        await _close(seed)


def _print_cli_result(preview: ScopePreview) -> None:
    print("\n" + "-" * 72)
    print(f"Query:      {preview.original_query}")
    print(f"Kind:       {preview.kind.value}")
    print(f"Ambiguous:  {preview.is_ambiguous}   Blocking: {preview.is_blocking}   "
          f"Can search: {preview.can_search}")
    print("Tokens:     " + ", ".join(f"{t.raw}[{t.matched_type.value}]" for t in preview.tokens))
    if preview.non_geo_keywords:
        print(f"Keywords:   {' '.join(preview.non_geo_keywords)}")

    if preview.country_matches:
        print("Countries:")
        for c in preview.country_matches[:5]:
            print(f"   - {c.name} ({c.country_iso2}) score={c.score:.2f}")

    if not preview.targets:
        print("Targets:    (none)")
        return

    print("Targets:")
    for i, t in enumerate(preview.targets, 1):
        coords = f"{t.lat:.4f}, {t.lng:.4f}" if t.lat is not None and t.lng is not None else "n/a"
        print(f"   {i}. {t.name}, {t.country_iso2 or '?'}  score={t.score:.2f}  coords={coords}")


if __name__ == "__main__":
    main()
