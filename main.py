"""CLI entrypoint: generate one entry, search a source, or serve the HTTP API."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict

from config import get_settings
from models import ReportStyle
from orchestrator import GenerationService
from outputs import export_result
from utils import setup_logger


async def _info(args: argparse.Namespace) -> Dict[str, Any]:
    async with GenerationService(settings=get_settings()) as service:
        if args.url:
            return await service.generate_from_url(args.url, style=args.format, debug=args.debug)
        return await service.generate(args.site, args.sid, style=args.format, debug=args.debug)


async def _search(args: argparse.Namespace) -> Dict[str, Any]:
    async with GenerationService(settings=get_settings()) as service:
        return await service.search(args.source, args.query, debug=args.debug)


def main() -> None:
    parser = argparse.ArgumentParser(description="PT-Gen CLI")
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--log-file", default=None, help="also write logs to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info")
    info.add_argument("url", nargs="?", default="")
    info.add_argument("--site", default="")
    info.add_argument("--sid", default="")
    info.add_argument("--format", default=ReportStyle.PLAIN.value)
    info.add_argument("--out", default="", help="directory to export report/json into")
    info.add_argument("--report-only", action="store_true", help="print the report text only")
    info.add_argument("--debug", action="store_true")

    search = sub.add_parser("search")
    search.add_argument("query")
    search.add_argument("--source", default="douban")
    search.add_argument("--debug", action="store_true")

    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()
    setup_logger(level=args.log_level, log_file=args.log_file)

    if args.command == "info":
        if not args.url and not (args.site and args.sid):
            parser.error("info requires a URL or both --site and --sid")
        result = asyncio.run(_info(args))
        if args.out:
            written = export_result(args.out, result)
            result = {**result, "written": {k: str(v) for k, v in written.items()}}
        if args.report_only and result.get("success"):
            print(result.get("format", ""))
        else:
            print(json.dumps(result, ensure_ascii=False, indent=2))
        if not result.get("success"):
            sys.exit(1)
        return

    if args.command == "search":
        result = asyncio.run(_search(args))
        print(json.dumps(result, ensure_ascii=False, indent=2))
        if not result.get("success"):
            sys.exit(1)
        return

    if args.command == "serve":
        import uvicorn

        from webapp.app import create_app

        uvicorn.run(create_app(), host=args.host, port=args.port)
        return


if __name__ == "__main__":
    main()
