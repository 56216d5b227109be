"""Run the check-in scheduler until interrupted.

Every minute the scheduler re-reads the config store and signs in every
enabled task whose time matches the current HH:MM.

Run with: python scripts/run_scheduler.py
Custom:   python scripts/run_scheduler.py --config data/config.json --json-logs
"""

import argparse
import asyncio
import sys

from dotenv import load_dotenv

load_dotenv()

from autocheckin.config import get_config  # noqa: E402
from autocheckin.logging import setup_logging  # noqa: E402
from autocheckin.scheduler import Scheduler  # noqa: E402
from autocheckin.store import ConfigStore  # noqa: E402


def _parse_args() -> argparse.Namespace:
    settings = get_config()
    parser = argparse.ArgumentParser(description="Run the check-in scheduler.")
    parser.add_argument(
        "--config",
        default=settings.config_path,
        help=f"Config store path (default: {settings.config_path}).",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=settings.log_json,
        help="Emit JSON log lines.",
    )
    return parser.parse_args()


async def main(args: argparse.Namespace) -> None:
    settings = get_config()
    setup_logging(json_output=args.json_logs, log_level=settings.log_level)
    scheduler = Scheduler(ConfigStore(args.config), settings=settings)
    await scheduler.run_forever()


if __name__ == "__main__":
    args = _parse_args()
    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        print("Scheduler stopped.", file=sys.stderr)
