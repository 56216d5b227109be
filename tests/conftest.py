from collections.abc import Iterable

import pytest
import requests
from requests.cookies import cookiejar_from_dict
from tenacity import wait_none

from autocheckin.config import CheckinConfig
from autocheckin.pages.login import LoginFlow
from autocheckin.pages.punchs import PunchListPage


@pytest.fixture
def settings(tmp_path) -> CheckinConfig:
    return CheckinConfig(_env_file=None, config_path=str(tmp_path / "config.json"))


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    """Retry portal fetches immediately."""
    monkeypatch.setattr(PunchListPage._fetch.retry, "wait", wait_none())
    monkeypatch.setattr(LoginFlow._fetch_login_page.retry, "wait", wait_none())


def make_response(
    text: str = "",
    status: int = 200,
    cookies: dict[str, str] | None = None,
    history: Iterable[requests.Response] = (),
    url: str = "http://k8n.cn/",
) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = text.encode("utf-8")
    resp.encoding = "utf-8"
    resp.url = url
    resp.cookies = cookiejar_from_dict(cookies or {})
    resp.history = list(history)
    return resp
