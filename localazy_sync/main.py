"""
Localazy sync - command line entry point.

Usage:
    python -m localazy_sync export
    python -m localazy_sync import --snapshot fixtures/blog.yaml
    python -m localazy_sync validate-mappings '[{"directusCode": "zh-Hans", "localazyCode": "zh-CN#Hans"}]'
    python -m localazy_sync serve

Without ``--snapshot`` the Directus instance configured through
``DIRECTUS_URL`` and ``DIRECTUS_TOKEN`` is used.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from localazy_sync.config import configure_logging, get_settings
from localazy_sync.config_loader import ConfigLoader
from localazy_sync.core.errors import ErrorTracker
from localazy_sync.core.models import SyncDirection, SyncResult
from localazy_sync.i18n.mapping import validate_mappings
from localazy_sync.services.synchronization import SynchronizationService
from localazy_sync.storage import DirectusBackend, create_rest_backend

logger = logging.getLogger(__name__)


async def run_sync(direction: SyncDirection, snapshot: str | None = None) -> SyncResult:
    """Run one full export or import."""
    settings = get_settings()

    backend: DirectusBackend
    if snapshot:
        backend = ConfigLoader().load_memory_backend(snapshot)
    elif settings.use_directus_rest:
        backend = await create_rest_backend(settings)
    else:
        return SyncResult(success=False, message="Set DIRECTUS_URL and DIRECTUS_TOKEN, or pass --snapshot")

    tracker = ErrorTracker()
    service = SynchronizationService(backend, tracker, settings)

    try:
        if direction == SyncDirection.EXPORT:
            result = await service.run_export()
        else:
            result = await service.run_import()
    finally:
        await backend.close()

    if len(tracker):
        result.details["errors"] = [record.model_dump(mode="json", exclude={"stack"}) for record in tracker.get_errors()]
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="localazy_sync", description="Synchronize Directus content with Localazy.")
    commands = parser.add_subparsers(dest="command", required=True)

    for direction in SyncDirection:
        command = commands.add_parser(direction.value, help=f"Run a full {direction.value}")
        command.add_argument("--snapshot", help="YAML snapshot for an in-memory Directus")

    validate = commands.add_parser("validate-mappings", help="Validate custom language mappings JSON")
    validate.add_argument("mappings", help="Mappings JSON text, or @path to a file")

    serve = commands.add_parser("serve", help="Run the webhook API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    if args.command == "validate-mappings":
        raw = args.mappings
        if raw.startswith("@"):
            with open(raw[1:]) as f:
                raw = f.read()
        validation = validate_mappings(raw)
        print(json.dumps(validation.model_dump(), indent=2))
        return 0 if validation.valid else 1

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            "localazy_sync.api.app:app",
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            reload=settings.debug,
        )
        return 0

    result = asyncio.run(run_sync(SyncDirection(args.command), args.snapshot))
    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
