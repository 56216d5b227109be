"""Run one stored check-in task now, ignoring its trigger time.

Run with: python scripts/run_task.py --task "Physics"
By id:    python scripts/run_task.py --task 3f2b9c1e-...

Prints one JSON line per opportunity tried.
"""

import argparse
import json
import sys

from dotenv import load_dotenv

load_dotenv()

from autocheckin.config import get_config  # noqa: E402
from autocheckin.executor import TaskExecutor  # noqa: E402
from autocheckin.logging import setup_logging  # noqa: E402
from autocheckin.store import ConfigStore  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one check-in task immediately.")
    parser.add_argument("--task", required=True, help="Task id or name.")
    parser.add_argument("--config", default=None, help="Config store path.")
    return parser.parse_args()


def main(args: argparse.Namespace) -> int:
    settings = get_config()
    setup_logging(json_output=settings.log_json, log_level=settings.log_level)

    config = ConfigStore(args.config or settings.config_path).load()
    matches = [t for t in config.tasks if args.task in (t.id, t.name)]
    if not matches:
        print(f"No task matches {args.task!r}", file=sys.stderr)
        return 1

    executor = TaskExecutor(config.global_.wecom, settings=settings)
    for task in matches:
        for result in executor.execute(task.model_copy(update={"enable": True})):
            print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main(_parse_args()))
