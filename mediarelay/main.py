import argparse
import asyncio
import json
import sys
from pathlib import Path

import colorama
from colorama import Fore, Style

from mediarelay.bootstrap import create_container
from mediarelay.core.config import Settings
from mediarelay.core.entities import ExtractionRequest
from mediarelay.core.errors import ExtractionExhausted, MediaRelayError, PlatformBlocked
from mediarelay.core.log import configure_logging
from mediarelay.sources.detector import detect_platform


def print_progress(percent: float):
    filled = int(percent // 5)
    bar = "#" * filled + "-" * (20 - filled)
    sys.stderr.write(f"\r{Fore.CYAN}[{bar}] {percent:5.1f}%{Style.RESET_ALL}")
    sys.stderr.flush()


def print_error(e: MediaRelayError):
    print(f"{Fore.RED}Error: {e.message}{Style.RESET_ALL}", file=sys.stderr)
    if isinstance(e, ExtractionExhausted):
        for reason in e.reasons:
            print(f"  - {reason}", file=sys.stderr)
    if isinstance(e, PlatformBlocked) and e.alternatives:
        print("Alternatives:", file=sys.stderr)
        for alt in e.alternatives:
            print(f"  * {alt['name']}: {alt['url']}", file=sys.stderr)


async def run_info(service, url: str) -> dict:
    return await service.describe(ExtractionRequest(source_url=url, metadata_only=True))


async def run_get(service, url: str, output: str = None) -> Path:
    print(f"{Fore.YELLOW}Platform: {detect_platform(url)}{Style.RESET_ALL}", file=sys.stderr)
    outcome = await service.download(ExtractionRequest(source_url=url), on_progress=print_progress)
    sys.stderr.write("\n")
    target = Path(output) if output else Path.cwd() / outcome.filename
    if target.is_dir():
        target = target / outcome.filename
    target.write_bytes(outcome.body)
    return target


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mediarelay", description="Extract and relay media from web pages")
    parser.add_argument("--env-file", help="Load settings from this .env file", default=None)
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    info_parser = subparsers.add_parser("info", help="Resolve a URL and print its metadata")
    info_parser.add_argument("url")

    get_parser = subparsers.add_parser("get", help="Download the media behind a URL")
    get_parser.add_argument("url")
    get_parser.add_argument("-o", "--output", help="Target file or directory", default=None)

    subparsers.add_parser("config", help="Show effective settings")
    return parser


def main(argv=None):
    colorama.init()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        settings = Settings.from_env(Path(args.env_file) if args.env_file else None)
    except MediaRelayError as e:
        print_error(e)
        return 1

    configure_logging("DEBUG" if args.verbose else settings.log_level)

    if args.command == "config":
        print(json.dumps(settings.as_dict(), indent=2))
        return 0

    container = create_container(settings)

    if args.command == "serve":
        from mediarelay.api.server import RelayServer
        RelayServer(container).run(args.host, args.port)
        return 0

    service = container["service"]
    try:
        if args.command == "info":
            print(json.dumps(asyncio.run(run_info(service, args.url)), indent=2, ensure_ascii=False))
        elif args.command == "get":
            target = asyncio.run(run_get(service, args.url, args.output))
            print(f"{Fore.GREEN}Saved {target}{Style.RESET_ALL}")
    except MediaRelayError as e:
        sys.stderr.write("\n")
        print_error(e)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
