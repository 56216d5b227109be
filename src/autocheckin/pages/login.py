"""LoginFlow - QR-code login handshake against the portal's WeChat login.

The login entry page (https://login.b8n.cn/qr/weixin/student/2) renders no
usable QR image for us. Instead an inline script carries the WeChat deep link:

  <script>
    ... location.href = "https://login.b8n.cn/...?sess=XXXX&tm=1700000000&sign=abcd" ...
  </script>

The sess/tm/sign triple is re-assembled into
http://login.b8n.cn/weixin/login/student/2?sess=..&tm=..&sign=.. and rendered
as a QR code for the user to scan with WeChat.

While waiting, GET {login_qr_url}?op=checklogin returns JSON:
  {"status": 0}                                  still waiting
  {"status": 1, "url": "/...?uid=..&token=.."}   scanned

The query tail of "url" is replayed against /student/uidlogin on bj.k8n.cn,
which answers with Set-Cookie (remember_student_<hash>=...) and redirects to
the student home page listing the user's courses.
"""

import io
import re
from enum import Enum

import qrcode
import requests
from bs4 import BeautifulSoup
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from autocheckin.config import CheckinConfig, get_config
from autocheckin.errors import ExtractionError, ParseError, TransientError
from autocheckin.logging import get_logger
from autocheckin.models import LoginSession, LoginStatus
from autocheckin.session import create_session, send

log = get_logger(__name__)

_URL_RE = re.compile(r"""https?://[^\s"']+""")
_PARAM_RE = re.compile(r"[?&](sess|tm|sign)=([^&]+)")
_COURSE_LINK_RE = re.compile(r"/student/course/(\d+)")

SESSION_COOKIE_PREFIX = "remember_student_"


class LoginState(str, Enum):
    IDLE = "idle"
    AWAITING_SCAN = "awaiting_scan"
    COMPLETED = "completed"
    EXPIRED = "expired"
    FAILED = "failed"


class LoginFlow:
    """One QR login attempt.

    get_code() and check_status() must run on the same instance: the status
    poll is tied to the cookies the login page handed out.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        settings: CheckinConfig | None = None,
    ) -> None:
        self.settings = settings or get_config()
        self.session = session or create_session()
        self.state = LoginState.IDLE
        self.check_url = self.settings.login_qr_url

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(3),
        retry=retry_if_exception_type(TransientError),
        reraise=True,
    )
    def _fetch_login_page(self) -> str:
        resp = send(
            self.session,
            "GET",
            self.settings.login_qr_url,
            timeout=self.settings.request_timeout_seconds,
        )
        return resp.text

    def get_code(self) -> tuple[bytes, str]:
        """Fetch the login page and render the WeChat deep link as a QR code.

        Returns:
            (PNG image bytes, status check URL).

        Raises:
            NetworkError: If the login page cannot be fetched.
            ExtractionError: If the login script no longer carries sess/tm/sign.
        """
        html = self._fetch_login_page()
        params = extract_login_params(html, self.settings.login_host)

        query = "&".join(f"{key}={value}" for key, value in params.items())
        deeplink = f"{self.settings.login_deeplink_url}?{query}"
        image = render_qr(deeplink)

        self.state = LoginState.AWAITING_SCAN
        log.info("login_code_issued", params=sorted(params), check_url=self.check_url)
        return image, self.check_url

    def check_status(self, check_url: str | None = None) -> LoginSession | None:
        """Poll the login status once.

        Args:
            check_url: Status endpoint returned by get_code().

        Returns:
            LoginSession once the code was scanned, None while still waiting.
            Expiry is not signalled by the portal; the caller decides when to
            stop polling and calls expire().

        Raises:
            NetworkError: On transport failure.
            ParseError: If the poll response is not the expected JSON object.
            ExtractionError: If completion yields no redirect URL or no cookie.
        """
        resp = send(
            self.session,
            "GET",
            check_url or self.check_url,
            params={"op": "checklogin"},
            timeout=self.settings.request_timeout_seconds,
        )
        try:
            status = LoginStatus.model_validate_json(resp.text)
        except ValidationError as e:
            self.state = LoginState.FAILED
            raise ParseError(f"Unexpected checklogin response: {resp.text[:100]!r}") from e

        if not status.completed:
            log.debug("login_pending", status=status.status)
            return None

        if not status.url:
            self.state = LoginState.FAILED
            raise ExtractionError("Login completed without a redirect url")

        try:
            login_session = self._complete(status.url)
        except Exception:
            self.state = LoginState.FAILED
            raise

        self.state = LoginState.COMPLETED
        return login_session

    def _complete(self, redirect_url: str) -> LoginSession:
        """Replay the redirect against uidlogin and capture the issued session."""
        target = completion_url(self.settings.uidlogin_url, redirect_url)
        resp = send(
            self.session,
            "GET",
            target,
            allow_redirects=True,
            timeout=self.settings.request_timeout_seconds,
        )

        cookie = capture_cookie(resp)
        class_ids = extract_class_ids(resp.text)
        log.info(
            "login_completed",
            cookie_tail=cookie[-8:],
            class_ids=list(class_ids),
        )
        return LoginSession(
            cookie=cookie,
            class_id=class_ids[0] if class_ids else "",
            class_ids=class_ids,
        )

    def expire(self) -> None:
        """Mark the attempt abandoned after the caller's polling timeout."""
        if self.state == LoginState.AWAITING_SCAN:
            self.state = LoginState.EXPIRED
            log.info("login_expired", check_url=self.check_url)


def extract_login_params(html: str, login_host: str) -> dict[str, str]:
    """Pull sess/tm/sign out of the login page's inline script.

    Args:
        html: Login page HTML.
        login_host: Host marker the login script contains (login.b8n.cn).

    Returns:
        Mapping of parameter name to raw (still URL-encoded) value.

    Raises:
        ExtractionError: No matching script, or its URL carries no parameters.
    """
    soup = BeautifulSoup(html, "html.parser")
    for script in soup.find_all("script"):
        content = script.string or ""
        if login_host not in content:
            continue

        match = _URL_RE.search(content)
        if not match:
            continue

        params = dict(_PARAM_RE.findall(match.group(0)))
        if not params:
            raise ExtractionError(
                f"Login script URL carries no sess/tm/sign: {match.group(0)[:80]}"
            )
        return params

    raise ExtractionError("Could not extract QR params: no login script found")


def render_qr(data: str) -> bytes:
    """Render data as a PNG QR code."""
    image = qrcode.make(data)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def completion_url(uidlogin_url: str, redirect_url: str) -> str:
    """Move the query tail of the poll's redirect url onto uidlogin."""
    parts = redirect_url.split("?")
    query = parts[1] if len(parts) > 1 else ""
    return f"{uidlogin_url}?{query}"


def capture_cookie(resp: requests.Response) -> str:
    """Build a Cookie header value from the Set-Cookie headers of a response chain.

    Cookies set on any redirect hop count. The portal's remember_student_*
    cookie is all that authenticated requests need, so it is preferred; other
    cookies are used only when it is absent.

    Raises:
        ExtractionError: No hop set any cookie.
    """
    captured: dict[str, str] = {}
    for hop in [*resp.history, resp]:
        for cookie in hop.cookies:
            captured[cookie.name] = cookie.value or ""

    remembered = {
        name: value
        for name, value in captured.items()
        if name.startswith(SESSION_COOKIE_PREFIX)
    }
    chosen = remembered or captured
    if not chosen:
        raise ExtractionError("Login completed but the portal set no session cookie")

    return "; ".join(f"{name}={value}" for name, value in chosen.items())


def extract_class_ids(html: str) -> tuple[str, ...]:
    """Course ids visible on the student home page, in page order."""
    soup = BeautifulSoup(html, "html.parser")
    ids: list[str] = []

    for div in soup.find_all("div", attrs={"course_id": True}):
        course_id = div.get("course_id", "")
        if course_id.isdigit():
            ids.append(course_id)

    for link in soup.find_all("a", href=True):
        match = _COURSE_LINK_RE.search(link["href"])
        if match:
            ids.append(match.group(1))

    return tuple(dict.fromkeys(ids))
