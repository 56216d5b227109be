"""Unattended check-in automation for the k8n.cn course attendance portal.

Contains the QR login handshake, the open check-in scanner and sign-in
submitter, the WeCom notifier, and the minute-tick scheduler.
"""

from autocheckin.executor import TaskExecutor
from autocheckin.models import AppConfig, Location, LoginSession, Task, WeComConfig
from autocheckin.pages.login import LoginFlow
from autocheckin.scheduler import Scheduler
from autocheckin.service import CheckinService
from autocheckin.store import ConfigStore

__all__ = [
    "AppConfig",
    "CheckinService",
    "ConfigStore",
    "Location",
    "LoginFlow",
    "LoginSession",
    "Scheduler",
    "Task",
    "TaskExecutor",
    "WeComConfig",
]
