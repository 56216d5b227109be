"""Command surface for a user-facing shell (CLI scripts, a tray app, ...).

Login attempts are stateful: the flow that issued a code must answer the
polls for it, so the active flow is remembered by its check URL.
"""

import base64

from autocheckin.config import CheckinConfig, get_config
from autocheckin.models import AppConfig, LoginSession, Task
from autocheckin.pages.login import LoginFlow
from autocheckin.store import ConfigStore


class CheckinService:
    def __init__(self, store: ConfigStore, settings: CheckinConfig | None = None) -> None:
        self.store = store
        self.settings = settings or get_config()
        self._login: LoginFlow | None = None

    def start_login(self) -> tuple[str, str]:
        """Begin a QR login.

        Returns:
            (base64 PNG of the QR code, check URL to pass to poll_login).
        """
        flow = LoginFlow(settings=self.settings)
        image, check_url = flow.get_code()
        self._login = flow
        return base64.b64encode(image).decode("ascii"), check_url

    def poll_login(self, check_url: str) -> LoginSession | None:
        """Poll once; None while the code has not been scanned."""
        flow = self._login
        if flow is None or flow.check_url != check_url:
            flow = LoginFlow(settings=self.settings)
            flow.check_url = check_url
            self._login = flow

        session = flow.check_status(check_url)
        if session is not None:
            self._login = None
        return session

    def cancel_login(self) -> None:
        if self._login is not None:
            self._login.expire()
            self._login = None

    def get_config(self) -> AppConfig:
        return self.store.load()

    def set_config(self, config: AppConfig) -> None:
        self.store.save(config)

    def add_task(self, task: Task) -> Task:
        return self.store.add_task(task)

    def update_task(self, task: Task) -> None:
        self.store.update_task(task)

    def delete_task(self, task_id: str) -> None:
        self.store.delete_task(task_id)
