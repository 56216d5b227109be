"""Course check-in pages: open opportunity listing and sign-in submission.

Listing page: GET {base}/student/course/{class_id}/punchs

  div.card-body                     one per check-in opportunity
    id="punchcard_4427853"          card id (some layouts)
    <form id="punch_pwd_frm_4427853">   password check-in form
    onclick="punch_gps(4427853)"    GPS check-in button
    <span class="layui-badge layui-bg-green">已签</span>   already signed

The same opportunity can show up under several of these markers, so ids are
unioned across all three patterns. A card carrying the 已签 badge is skipped
whole, whatever else it contains.

Submission: POST {base}/student/punchs/course/{class_id}/{sign_id}, form
encoded id/lat/lng/acc/res/gps_addr/pwd. The reply is an HTML message page;
its text says 签到成功 (or "Success" in the English skin) when accepted.
"""

import random
import re

import requests
from bs4 import BeautifulSoup
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from autocheckin.errors import TransientError
from autocheckin.logging import get_logger
from autocheckin.models import SignOutcome
from autocheckin.session import send

log = get_logger(__name__)

SIGNED_MARKER = "已签"
SUCCESS_MARKERS = ("成功", "Success")
SUCCESS_MESSAGE = "签到成功"

# Degrees; roughly 15 m at mid latitudes
JITTER_OFFSET = 0.00015
FAILURE_PREFIX_LEN = 50

_ID_PATTERNS = (
    re.compile(r"punchcard_(\d+)"),
    re.compile(r"punch_pwd_frm_(\d+)"),
    re.compile(r"punch_gps\((\d+)\)"),
)


class PunchListPage:
    """Open check-in listing of one course."""

    CARD = "div.card-body"

    def __init__(self, session: requests.Session, base_url: str, *, timeout: float = 15.0) -> None:
        self.session = session
        self.base_url = base_url
        self.timeout = timeout

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(5),
        retry=retry_if_exception_type(TransientError),
        reraise=True,
    )
    def _fetch(self, headers: dict[str, str], class_id: str) -> str:
        url = f"{self.base_url}/student/course/{class_id}/punchs"
        resp = send(self.session, "GET", url, headers=headers, timeout=self.timeout)
        return resp.text

    def scan(self, headers: dict[str, str], class_id: str) -> set[str]:
        """Return ids of open check-ins, excluding already signed ones.

        An empty set means nothing is open right now.

        Raises:
            NetworkError: If the listing cannot be fetched (after one retry).
        """
        html = self._fetch(headers, class_id)
        ids = parse_open_ids(html, self.CARD)
        log.debug("punchs_scanned", class_id=class_id, open_ids=sorted(ids))
        return ids


def parse_open_ids(html: str, card_selector: str = PunchListPage.CARD) -> set[str]:
    """Union of opportunity ids across all id patterns in unsigned cards."""
    soup = BeautifulSoup(html, "html.parser")
    open_ids: set[str] = set()

    for card in soup.select(card_selector):
        card_html = str(card)
        if SIGNED_MARKER in card_html:
            continue
        for pattern in _ID_PATTERNS:
            open_ids.update(pattern.findall(card_html))

    return open_ids


class SignInForm:
    """Sign-in submission for one opportunity."""

    def __init__(self, session: requests.Session, base_url: str, *, timeout: float = 15.0) -> None:
        self.session = session
        self.base_url = base_url
        self.timeout = timeout

    def submit(
        self,
        headers: dict[str, str],
        class_id: str,
        sign_id: str,
        lat: str,
        lng: str,
    ) -> SignOutcome:
        """Post the sign-in form and classify the reply. Never retried.

        Raises:
            NetworkError: If the request fails in transport.
        """
        url = f"{self.base_url}/student/punchs/course/{class_id}/{sign_id}"
        form = {
            "id": sign_id,
            "lat": lat,
            "lng": lng,
            "acc": "10.0",
            # Unused, but the portal rejects forms without them
            "res": "",
            "gps_addr": "",
            "pwd": "",
        }
        resp = send(
            self.session, "POST", url, headers=headers, data=form, timeout=self.timeout
        )
        return classify_response(resp.text)


def classify_response(html: str) -> SignOutcome:
    """Map a sign-in reply page to a success or a short failure diagnostic."""
    text = BeautifulSoup(html, "html.parser").get_text()
    if any(marker in text for marker in SUCCESS_MARKERS):
        return SignOutcome(ok=True, message=SUCCESS_MESSAGE)
    return SignOutcome(ok=False, message=text.strip()[:FAILURE_PREFIX_LEN])


def jitter_location(
    lat: str,
    lng: str,
    *,
    offset: float = JITTER_OFFSET,
    rng: random.Random | None = None,
) -> tuple[str, str]:
    """Perturb each axis independently by up to +/- offset degrees.

    Unparseable coordinates count as 0.0. Call once per submission; reusing a
    result would submit identical coordinates twice.

    Returns:
        (lat, lng) formatted to 6 decimal places.
    """
    rng = rng or random
    base_lat = _to_float(lat)
    base_lng = _to_float(lng)
    new_lat = base_lat + rng.uniform(-offset, offset)
    new_lng = base_lng + rng.uniform(-offset, offset)
    return f"{new_lat:.6f}", f"{new_lng:.6f}"


def _to_float(value: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
