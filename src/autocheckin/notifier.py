"""WeCom (Enterprise WeChat) application message notifier.

Two sequential calls per notification, no token caching:
  GET  {api}/gettoken?corpid=..&corpsecret=..       -> {"access_token": ...}
  POST {api}/message/send?access_token=..            -> {"errcode": 0, ...}
"""

from datetime import datetime

import requests

from autocheckin.config import CheckinConfig, get_config
from autocheckin.errors import AuthError, ParseError, RemoteRejection
from autocheckin.logging import get_logger
from autocheckin.models import WeComConfig
from autocheckin.session import send

logger = get_logger(__name__)

MESSAGE_BANNER = "【AutoCheckin】"


class WeComNotifier:
    def __init__(
        self,
        wecom: WeComConfig,
        session: requests.Session | None = None,
        settings: CheckinConfig | None = None,
    ) -> None:
        self.wecom = wecom
        self.session = session or requests.Session()
        self.settings = settings or get_config()

    def notify(self, title: str, content: str) -> None:
        """Send one text message. Does nothing when notifications are disabled.

        Raises:
            NetworkError: On transport failure.
            ParseError: If a reply is not JSON.
            AuthError: If no access token is issued.
            RemoteRejection: If the send call answers errcode != 0.
        """
        if not self.wecom.enable:
            return

        token = self._get_token()
        payload = {
            "touser": self.wecom.touser,
            "msgtype": "text",
            "agentid": self.wecom.agentid,
            "text": {"content": format_message(title, content)},
            "safe": 0,
        }
        resp = send(
            self.session,
            "POST",
            f"{self.settings.wecom_api_url}/message/send",
            params={"access_token": token},
            json=payload,
            timeout=self.settings.request_timeout_seconds,
        )
        body = _json(resp)
        if body.get("errcode") != 0:
            raise RemoteRejection(f"WeCom Error: {body}")

        logger.info("notification_sent", title=title, touser=self.wecom.touser)

    def _get_token(self) -> str:
        resp = send(
            self.session,
            "GET",
            f"{self.settings.wecom_api_url}/gettoken",
            params={"corpid": self.wecom.corpid, "corpsecret": self.wecom.secret},
            timeout=self.settings.request_timeout_seconds,
        )
        body = _json(resp)
        token = body.get("access_token")
        if not isinstance(token, str) or not token:
            raise AuthError(
                f"Failed to get access token: errcode={body.get('errcode')} "
                f"errmsg={body.get('errmsg')}"
            )
        return token


def format_message(title: str, content: str, now: datetime | None = None) -> str:
    now = now or datetime.now()
    return (
        f"{MESSAGE_BANNER}\n{title}\n----------------\n{content}\n"
        f"Time: {now.strftime('%Y-%m-%d %H:%M:%S')}"
    )


def _json(resp: requests.Response) -> dict:
    try:
        body = resp.json()
    except ValueError as e:
        raise ParseError(f"WeCom returned non-JSON: {resp.text[:100]!r}") from e
    if not isinstance(body, dict):
        raise ParseError(f"WeCom returned unexpected JSON: {body!r}")
    return body
