from __future__ import annotations

import argparse
import asyncio

import structlog

from .config import settings
from .logging_config import setup_logging
from .models import FeedSource
from .output import JsonHandler, OutputHandler, StdoutHandler
from .service import GuardService
from .storage import JsonFileStore

log = structlog.get_logger()


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="coi-risk-guard",
        description="Check domains against the ČOI risky e-shop list.",
    )
    parser.add_argument("--json", action="store_true", help="emit JSON lines instead of text")
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="evaluate URLs or domains")
    check.add_argument("candidates", nargs="+")
    check.add_argument("--allow", action="append", default=[], metavar="DOMAIN",
                       help="approve DOMAIN for this run before checking")
    check.add_argument("--no-protection", action="store_true",
                       help="evaluate with protection switched off")

    sub.add_parser("refresh", help="download the list and update the cached snapshot "
                   "(non-zero exit unless the download succeeds)")
    sub.add_parser("list", help="print every domain and reason from the cached snapshot")
    return parser.parse_args(argv)


async def run(argv: list[str] | None = None, service: GuardService | None = None) -> int:
    args = _parse_args(argv)
    setup_logging()
    log.info("starting_coi_risk_guard", command=args.command, storage=settings.storage_path)

    handler: OutputHandler = JsonHandler() if args.json else StdoutHandler()
    service = service or GuardService(JsonFileStore(settings.storage_path))

    match args.command:
        case "check":
            result = await service.start_session()
            handler.emit_load(result)
            for domain in args.allow:
                service.state.overrides.approve(domain)
            if args.no_protection:
                await service.state.protection.set_enabled(False)
            for candidate in args.candidates:
                verdict = service.engine.evaluate(candidate)
                handler.emit_verdict(candidate, verdict, service.state.protection.is_enabled())
            status = 0 if result.count else 1
        case "list":
            # cached snapshot or bundled file, no network
            result = await service.resume()
            handler.emit_load(result)
            for entry in service.state.index.entries():
                print(f"{entry.domain}\t{entry.reason}")
            status = 0 if result.count else 1
        case "refresh":
            await service.state.init()
            result = await service.loader.reload()
            handler.emit_load(result)
            if result.source is not FeedSource.REMOTE:
                log.error("refresh_not_from_remote", source=result.source, count=result.count)
            status = 0 if result.source is FeedSource.REMOTE else 1

    await service.end_session()
    return status


def main() -> None:
    raise SystemExit(asyncio.run(run()))


if __name__ == "__main__":
    main()
