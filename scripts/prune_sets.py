#!/usr/bin/env python3
"""
Prune aged images from storage sets without going through the HTTP API.

Meant for cron. Discovers sets from the environment (and .env) exactly
like the service does, runs one sweep and prints the results as JSON.

Usage:
    python scripts/prune_sets.py --ttl 86400
    python scripts/prune_sets.py --set R2_2 --dry-run

Exit status is 1 when any set reported an error.
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from bucketsets.config.settings import get_settings  # noqa: E402
from bucketsets.core.storage.models import (  # noqa: E402
    BackendError,
    BackendNotFoundError,
    BackendUnavailableError,
    PruneResult,
)
from bucketsets.core.storage.pruner import prune_all, prune_backend  # noqa: E402
from bucketsets.infrastructure.storage.registry import BackendRegistry  # noqa: E402


def result_to_dict(outcome) -> dict:
    """Same shape as the /prune response entries."""
    if isinstance(outcome, BackendError):
        return {"set": outcome.backend_id, "error": outcome.message}
    return {
        "set": outcome.backend_id,
        "deleted": outcome.deleted_count,
        "dry": outcome.dry_run,
        "items": outcome.deleted_keys,
        "errors": [
            {"key": e.key, "code": e.code, "message": e.message}
            for e in outcome.errors
        ],
    }


def has_errors(outcome) -> bool:
    return isinstance(outcome, BackendError) or (
        isinstance(outcome, PruneResult) and bool(outcome.errors)
    )


async def run(registry: BackendRegistry, ttl: int, dry_run: bool, set_id=None, **kwargs) -> list:
    if set_id:
        try:
            outcome = await prune_backend(
                registry.backends, set_id, max_age_seconds=ttl, dry_run=dry_run, **kwargs
            )
        except BackendUnavailableError as e:
            outcome = BackendError(backend_id=set_id, message=e.message)
        return [outcome]

    return await prune_all(registry.backends, max_age_seconds=ttl, dry_run=dry_run, **kwargs)


def main(argv=None):
    import argparse

    settings = get_settings()

    parser = argparse.ArgumentParser(description='Prune aged images from storage sets')
    parser.add_argument('--ttl', type=int, default=settings.prune_default_ttl_seconds,
                        help='Maximum age in seconds (default: %(default)s)')
    parser.add_argument('--dry-run', action='store_true', help='Report only, don\'t delete')
    parser.add_argument('--set', dest='set_id', help='Only sweep this set id')
    args = parser.parse_args(argv)

    if args.ttl < 0:
        parser.error('--ttl cannot be negative')

    registry = BackendRegistry.from_environ(
        settings.backend_environ(),
        defaults=settings.resolver_defaults,
        prefixes=settings.backend_prefixes_list,
        mock_mode=settings.storage_mock_mode,
        page_size=settings.list_page_size,
    )

    if not len(registry):
        print("ERROR: No storage sets found in the environment")
        return 1

    try:
        outcomes = asyncio.run(run(
            registry,
            ttl=args.ttl,
            dry_run=args.dry_run,
            set_id=args.set_id,
            batch_size=settings.prune_batch_size,
            sample_limit=settings.prune_sample_limit,
        ))
    except BackendNotFoundError:
        print(f"ERROR: Unknown set {args.set_id}")
        return 1

    print(json.dumps({
        "ok": True,
        "ttl": args.ttl,
        "dry": args.dry_run,
        "results": [result_to_dict(o) for o in outcomes],
    }, indent=2))

    return 1 if any(has_errors(o) for o in outcomes) else 0


if __name__ == '__main__':
    sys.exit(main())
