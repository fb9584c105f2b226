#!/usr/bin/env python3
"""
Generate the static catalog manifest from the primary datastore.

Runs during the build so the first requests after a deploy can be served
from a published manifest instead of regenerating it. Writes the manifest
JSON to disk and prints a summary of products, categories and collections.
"""

import argparse
import asyncio
import json
from pathlib import Path
import sys
import os

from shared.config import BaseConfig
from shared.logging import configure_logging
from service_catalog.app.adapters.product_store import PostgresProductStore
from service_catalog.app.caching.manifest_cache import utc_now
from service_catalog.app.images.resolver import default_resolver
from service_catalog.app.manifest.generator import ManifestGenerator, generate_summary


DEFAULT_OUTPUT = Path("public") / "data" / "manifest.json"


async def generate(*, dsn: str, output: Path, config: BaseConfig, dry_run: bool) -> dict:
    """Generate the manifest and return its summary."""
    store = PostgresProductStore(dsn, command_timeout=config.datastore_timeout_seconds)
    generator = ManifestGenerator(
        store,
        default_resolver(config),
        query_timeout=config.datastore_timeout_seconds,
    )

    try:
        manifest = await generator.generate(utc_now())
    finally:
        await store.stop()

    if not dry_run:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(manifest.to_dict(), indent=2))

    return generate_summary(manifest)


def _parse_args(config: BaseConfig) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate the static catalog manifest.")
    parser.add_argument("--dsn", default=config.postgres_dsn, help="PostgreSQL DSN for the primary datastore")
    parser.add_argument("--output", type=Path, default=DEFAULT_OUTPUT, help="Path of the manifest JSON file")
    parser.add_argument("--dry-run", action="store_true", help="Generate and summarize without writing the file")
    parser.add_argument("--log-level", default=os.getenv("CATALOG_LOG_LEVEL", "warning"), help="Log level")
    return parser.parse_args()


def main() -> int:
    config = BaseConfig()
    args = _parse_args(config)
    configure_logging("catalog", args.log_level, json_output=False)

    try:
        summary = asyncio.run(
            generate(
                dsn=args.dsn,
                output=args.output,
                config=config,
                dry_run=args.dry_run,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:
        print(f"[static-data] failed: {exc}", file=sys.stderr)
        return 1

    if args.dry_run:
        print("[static-data] DRY RUN - manifest not written")
    else:
        print(f"[static-data] manifest written to {args.output}")

    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
