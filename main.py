"""
main.py
========
Command-line entry point for the AMD strategy core.

Run with:
    python main.py --list
    python main.py --strategy ml_inference --audio greeting.wav
    python main.py --strategy signaling --event '{"AnsweredBy": "machine_end_beep"}'
    python main.py --strategy llm_audio --audio greeting.wav --config provider=openai
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()  # Load .env before any module reads env vars

# Configure logging for the entire application
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Suppress SDK/transport internal logs so only strategy logs are shown
for _transport_logger_name in (
    "openai",
    "openai._base_client",
    "httpx",
    "httpcore",
    "aiohttp.client",
    "aiohttp.access",
):
    logging.getLogger(_transport_logger_name).setLevel(logging.CRITICAL)

from amdcore import (  # noqa: E402
    ConfigurationError,
    UnknownStrategyType,
    UnsupportedOperation,
    list_strategies,
    run_detection,
)

logger = logging.getLogger("amdcore.cli")


def _parse_config_pairs(pairs: list[str]) -> dict[str, str]:
    config: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"--config expects KEY=VALUE, got {pair!r}")
        config[key.strip()] = value
    return config


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Answering-machine detection")
    parser.add_argument("--list", action="store_true", help="print the strategy catalog")
    parser.add_argument("--strategy", help="strategy identifier")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--audio", help="path to a WAV file (audio-driven strategies)")
    source.add_argument("--event", help="webhook payload JSON or event name (event-driven strategies)")
    parser.add_argument(
        "--config", action="append", default=[], metavar="KEY=VALUE",
        help="strategy configuration override (repeatable)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.list:
        print(json.dumps([d.to_dict() for d in list_strategies()], indent=2))
        return 0

    if not args.strategy or not (args.audio or args.event):
        parser.error("--strategy and one of --audio / --event are required")

    if args.audio:
        try:
            with open(args.audio, "rb") as fh:
                source = fh.read()
        except OSError as exc:
            logger.error("Cannot read audio file %s: %s", args.audio, exc)
            return 2
    else:
        try:
            source = json.loads(args.event)
        except json.JSONDecodeError:
            source = args.event  # bare event name

    try:
        config = _parse_config_pairs(args.config)
        result = asyncio.run(run_detection(args.strategy, config, source))
    except (argparse.ArgumentTypeError, UnknownStrategyType, ConfigurationError, UnsupportedOperation) as exc:
        logger.error("%s", exc)
        return 2

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
