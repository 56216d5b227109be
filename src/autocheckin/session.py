"""HTTP session client impersonating the portal's mobile WeChat browser.

Every portal request goes through a requests.Session carrying the same
User-Agent, so the portal sees one consistent device. Transport failures are
mapped to NetworkError here so callers only deal with the checkin error
hierarchy.
"""

from urllib.parse import urlsplit, urlunsplit

import requests

from autocheckin.errors import NetworkError
from autocheckin.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 12; PAL-AL00 Build/HUAWEIPAL-AL00; wv) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Version/4.0 Chrome/116.0.0.0 "
    "Mobile Safari/537.36 XWEB/1160065 MMWEBSDK/20231202 MMWEBID/1136 "
    "MicroMessenger/8.0.47.2560(0x28002F35) WeChat/arm64 Weixin NetType/4G "
    "Language/zh_CN ABI/arm64"
)

# Captured cookie strings sometimes carry this prefix from the login form.
_USERNAME_ARTIFACT = "username="


def create_session() -> requests.Session:
    """Create a cookie-persisting session with the mobile browser identity."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    return session


def clean_cookie(raw_cookie: str) -> str:
    """Strip the username= artifact left in captured cookie strings."""
    return raw_cookie.replace(_USERNAME_ARTIFACT, "")


def build_headers(cookie: str, class_id: str, base_url: str) -> dict[str, str]:
    """Headers for authenticated portal requests scoped to one course.

    Args:
        cookie: Raw cookie string stored on the task.
        class_id: Course id, used for the Referer.
        base_url: Portal base URL (e.g. http://k8n.cn).
    """
    return {
        "User-Agent": USER_AGENT,
        "Referer": f"{base_url}/student/course/{class_id}",
        "Cookie": clean_cookie(cookie),
    }


def send(
    session: requests.Session,
    method: str,
    url: str,
    *,
    timeout: float = 15.0,
    **kwargs,
) -> requests.Response:
    """Issue a request, mapping transport failures and 5xx to NetworkError.

    Args:
        session: Session to send through.
        method: HTTP method.
        url: Absolute URL.
        timeout: Request timeout in seconds.
        **kwargs: Passed through to requests (headers, params, data, json).

    Raises:
        NetworkError: On connection failure, timeout, or HTTP 5xx.
    """
    # Query strings carry webhook credentials and urllib3 error text repeats
    # them, so neither reaches logs or error messages.
    target = strip_query(url)
    try:
        resp = session.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        reason = type(e).__name__
        logger.warning("http_request_failed", method=method, url=target, error=reason)
        raise NetworkError(f"Network Error: {method} {target} failed: {reason}") from e

    if resp.status_code >= 500:
        logger.warning("http_server_error", method=method, url=target, status=resp.status_code)
        raise NetworkError(f"Network Error: {method} {target} returned HTTP {resp.status_code}")

    logger.debug("http_request", method=method, url=target, status=resp.status_code)
    return resp


def strip_query(url: str) -> str:
    """Drop query string and fragment from a URL."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
