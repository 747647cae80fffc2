"""Command line entry point for querying providers.

    context-client items --config providers.yaml --uri file:///src/main.go
    context-client annotations --config providers.yaml --uri file:///a.go \\
        --content-file a.go --watch
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import BaseModel

from .client import Client, ClientEnv
from .config import ClientSettings
from .errors import ContextClientError
from .models import AnnotationsParams, ItemsParams
from .sources import FileConfigurationSource

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="context-client",
        description="Query context providers and print the combined result",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("command", choices=["items", "annotations"])
    parser.add_argument("--config", required=True, help="YAML/JSON provider configuration")
    parser.add_argument("--uri", required=True, help="URI of the resource")
    parser.add_argument("--content-file", help="File holding the resource content")
    parser.add_argument("--message", help="Free-text query passed to item providers")
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and print every update (configuration file is watched)",
    )
    parser.add_argument("--debug", action="store_true", help="Print provider diagnostics")
    parser.add_argument("--settings", help="YAML file with client settings")
    return parser


def _dump(results: Sequence[BaseModel]) -> str:
    return json.dumps(
        [r.model_dump(by_alias=True, exclude_none=True) for r in results], indent=2
    )


async def run(args: argparse.Namespace, settings: Optional[ClientSettings] = None) -> int:
    content: Optional[str] = None
    if args.content_file:
        content = Path(args.content_file).read_text(encoding="utf-8")

    source = FileConfigurationSource(
        args.config,
        watch=args.watch,
        overrides={"debug": True} if args.debug else None,
    )
    env = ClientEnv(
        configuration=source,
        logger=lambda message: print(message, file=sys.stderr),
        settings=settings or ClientSettings(_config_file=args.settings),
    )

    async with Client(env) as client:
        if args.command == "items":
            params = ItemsParams(uri=args.uri, content=content, message=args.message)
            stream = client.items_changes(params)
            pull = client.items
        else:
            params = AnnotationsParams(uri=args.uri, content=content or "")
            stream = client.annotations_changes(params)
            pull = client.annotations

        if not args.watch:
            print(_dump(await pull(params)))
            return 0

        # Runs until interrupted; leaving the client context cancels the stream
        async for snapshot in stream:
            print(_dump(snapshot), flush=True)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    settings = ClientSettings(_config_file=args.settings)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        return 130
    except ContextClientError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
