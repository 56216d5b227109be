"""Log in to the attendance portal by scanning a QR code with WeChat.

Writes the QR code to a PNG, polls until it is scanned, then prints the
captured cookie and course id. With --name/--time/--lat/--lng the session is
stored as a new task right away.

Run with: python scripts/login.py
Save:     python scripts/login.py --name "Physics" --time 08:05 --lat 39.9 --lng 116.3

Exit codes:
  0 = logged in
  1 = error or timed out (message on stderr)
"""

import argparse
import json
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from autocheckin.config import get_config  # noqa: E402
from autocheckin.logging import setup_logging  # noqa: E402
from autocheckin.models import Location, Task  # noqa: E402
from autocheckin.pages.login import LoginFlow  # noqa: E402
from autocheckin.store import ConfigStore  # noqa: E402


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for JSON."""
    print(msg, file=sys.stderr)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="QR login to the attendance portal.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--qr-path",
        default="data/login_qr.png",
        help="Where to write the QR code image (default: data/login_qr.png).",
    )
    parser.add_argument("--config", default=None, help="Config store path.")
    parser.add_argument("--name", help="Create a task with this name.")
    parser.add_argument("--time", help="Task trigger time, HH:MM.")
    parser.add_argument("--lat", default="", help="Task latitude.")
    parser.add_argument("--lng", default="", help="Task longitude.")
    parser.add_argument("--class-id", help="Override the discovered course id.")
    return parser.parse_args()


def main(args: argparse.Namespace) -> int:
    settings = get_config()
    setup_logging(json_output=settings.log_json, log_level=settings.log_level)

    flow = LoginFlow(settings=settings)
    image, check_url = flow.get_code()

    qr_path = Path(args.qr_path)
    qr_path.parent.mkdir(parents=True, exist_ok=True)
    qr_path.write_bytes(image)
    _log(f"Scan {qr_path} with WeChat (waiting up to {settings.login_timeout_seconds}s)...")

    deadline = time.monotonic() + settings.login_timeout_seconds
    session = None
    while time.monotonic() < deadline:
        session = flow.check_status(check_url)
        if session is not None:
            break
        time.sleep(settings.login_poll_interval_seconds)

    if session is None:
        flow.expire()
        _log("Timed out waiting for the scan.")
        return 1

    class_id = args.class_id or session.class_id
    if len(session.class_ids) > 1 and not args.class_id:
        _log(f"Several courses found {list(session.class_ids)}; using {class_id}.")

    print(json.dumps({"cookie": session.cookie, "class_id": class_id}, ensure_ascii=False))

    if args.name:
        if not args.time or not class_id:
            _log("--name needs --time and a course id to create a task.")
            return 1
        store = ConfigStore(args.config or settings.config_path)
        task = store.add_task(
            Task(
                name=args.name,
                time=args.time,
                class_id=class_id,
                cookie=session.cookie,
                location=Location(lat=args.lat, lng=args.lng),
            )
        )
        _log(f"Saved task {task.name} ({task.id}) at {task.time}.")

    return 0


if __name__ == "__main__":
    args = _parse_args()
    try:
        sys.exit(main(args))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
