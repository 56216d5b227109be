"""Task executor: scan a course for open check-ins and sign each one.

Within one task, opportunities are handled strictly one after another with a
random pause before each submission. A failed submission or notification only
costs that opportunity; the loop moves on to the next one.
"""

import random
import time
from collections.abc import Callable

import requests

from autocheckin.config import CheckinConfig, get_config
from autocheckin.errors import CheckinError
from autocheckin.logging import get_logger
from autocheckin.models import CheckinResult, SignOutcome, Task, WeComConfig
from autocheckin.notifier import WeComNotifier
from autocheckin.pages.punchs import (
    SUCCESS_MARKERS,
    PunchListPage,
    SignInForm,
    jitter_location,
)
from autocheckin.session import build_headers, create_session

logger = get_logger(__name__)

# Seconds to wait before each submission, drawn uniformly
PACING_RANGE = (1.0, 5.0)
ERROR_MARKERS = ("出错", "Error")


class TaskExecutor:
    """Runs check-in tasks with one notification config.

    Safe to share across threads: each execute() call opens its own HTTP
    session and closes it on return.
    """

    def __init__(
        self,
        wecom: WeComConfig,
        settings: CheckinConfig | None = None,
        session_factory: Callable[[], requests.Session] = create_session,
        notifier: WeComNotifier | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.wecom = wecom
        self.settings = settings or get_config()
        self.session_factory = session_factory
        self.notifier = notifier
        self.sleep = sleep
        self.rng = rng or random.Random()

    def execute(self, task: Task) -> list[CheckinResult]:
        """Sign every open check-in of the task's course.

        Returns:
            One CheckinResult per opportunity tried; empty if the task is
            disabled, nothing is open, or the listing could not be read.
        """
        if not task.enable:
            return []

        logger.info("task_started", task=task.name, class_id=task.class_id)
        with self.session_factory() as session:
            return self._run(task, session)

    def _run(self, task: Task, session: requests.Session) -> list[CheckinResult]:
        base_url = self.settings.portal_base_url
        timeout = self.settings.request_timeout_seconds
        headers = build_headers(task.cookie, task.class_id, base_url)
        notifier = self.notifier or WeComNotifier(
            self.wecom, session=session, settings=self.settings
        )

        try:
            open_ids = PunchListPage(session, base_url, timeout=timeout).scan(
                headers, task.class_id
            )
        except CheckinError as e:
            logger.error("task_scan_failed", task=task.name, error=str(e))
            return []

        if not open_ids:
            logger.info("task_no_open_checkins", task=task.name)
            return []

        form = SignInForm(session, base_url, timeout=timeout)
        results: list[CheckinResult] = []
        for sign_id in open_ids:
            self.sleep(self.rng.uniform(*PACING_RANGE))

            lat, lng = jitter_location(task.location.lat, task.location.lng, rng=self.rng)
            try:
                outcome = form.submit(headers, task.class_id, sign_id, lat, lng)
            except CheckinError as e:
                outcome = SignOutcome(ok=False, message=str(e))

            logger.info(
                "checkin_result",
                task=task.name,
                sign_id=sign_id,
                ok=outcome.ok,
                message=outcome.message,
                lat=lat,
                lng=lng,
            )
            line = f"Task [{task.name}] Result: {outcome.message} (Loc: {lat},{lng})"
            title = notification_title(task.name, outcome)

            notified = True
            try:
                notifier.notify(title, line)
            except CheckinError as e:
                notified = False
                logger.warning(
                    "notification_failed", task=task.name, sign_id=sign_id, error=str(e)
                )

            results.append(
                CheckinResult(
                    task=task.name,
                    sign_id=sign_id,
                    ok=outcome.ok,
                    message=outcome.message,
                    lat=lat,
                    lng=lng,
                    notified=notified,
                )
            )

        logger.info(
            "task_finished",
            task=task.name,
            attempted=len(results),
            succeeded=sum(r.ok for r in results),
        )
        return results


def notification_title(task_name: str, outcome: SignOutcome) -> str:
    """Successes and explicit errors share one title, everything else another."""
    message = outcome.message
    success = outcome.ok and any(marker in message for marker in SUCCESS_MARKERS)
    if success or any(marker in message for marker in ERROR_MARKERS):
        return f"{task_name} Check-in Result"
    return f"{task_name} Check-in Failed"
