import json
from unittest.mock import MagicMock

import pytest
import requests

from autocheckin.errors import ExtractionError, NetworkError, ParseError
from autocheckin.pages.login import (
    LoginFlow,
    LoginState,
    capture_cookie,
    completion_url,
    extract_class_ids,
    extract_login_params,
)

from conftest import make_response

LOGIN_PAGE = """
<html><head>
<script src="/static/jquery.min.js"></script>
<script>var analytics = "https://stats.example.com/a.js";</script>
<script>
  var qr = "https://login.b8n.cn/weixin/login/student/2?sess=S3ss10n&tm=1700000000&sign=abc123";
  setInterval(check, 2000);
</script>
</head><body></body></html>
"""

HOME_PAGE = """
<div class="course-card" course_id="777"><a href="/student/course/777">Physics</a></div>
<div class="course-item"><a href="/student/course/888/punchs">Maths</a></div>
<a href="/student/profile">me</a>
"""


def test_extract_login_params_reads_script_url():
    params = extract_login_params(LOGIN_PAGE, "login.b8n.cn")

    assert params == {"sess": "S3ss10n", "tm": "1700000000", "sign": "abc123"}


def test_extract_login_params_without_login_script():
    html = "<script>var x = 'https://elsewhere.example.com/?sess=1';</script>"

    with pytest.raises(ExtractionError):
        extract_login_params(html, "login.b8n.cn")


def test_extract_login_params_script_without_params():
    html = '<script>location.href = "https://login.b8n.cn/qr/weixin/student/2";</script>'

    with pytest.raises(ExtractionError):
        extract_login_params(html, "login.b8n.cn")


def test_get_code_returns_png_and_check_url(settings):
    session = MagicMock(spec=requests.Session)
    session.request.return_value = make_response(LOGIN_PAGE)
    flow = LoginFlow(session=session, settings=settings)

    image, check_url = flow.get_code()

    assert image.startswith(b"\x89PNG")
    assert check_url == settings.login_qr_url
    assert flow.state is LoginState.AWAITING_SCAN


def test_get_code_extraction_failure_stays_idle(settings):
    session = MagicMock(spec=requests.Session)
    session.request.return_value = make_response("<html></html>")
    flow = LoginFlow(session=session, settings=settings)

    with pytest.raises(ExtractionError):
        flow.get_code()
    assert flow.state is LoginState.IDLE


def test_check_status_pending(settings):
    session = MagicMock(spec=requests.Session)
    session.request.return_value = make_response(json.dumps({"status": 0}))
    flow = LoginFlow(session=session, settings=settings)

    assert flow.check_status(settings.login_qr_url) is None

    _, kwargs = session.request.call_args
    assert kwargs["params"] == {"op": "checklogin"}


def test_check_status_missing_status_is_pending(settings):
    session = MagicMock(spec=requests.Session)
    session.request.return_value = make_response("{}")
    flow = LoginFlow(session=session, settings=settings)

    assert flow.check_status() is None


def test_check_status_completion_captures_session(settings):
    poll = make_response(json.dumps({"status": 1, "url": "https://x/y?foo=bar"}))
    redirect_hop = make_response(
        status=302,
        cookies={"remember_student_59ba36": "tok3n", "PHPSESSID": "php"},
    )
    landing = make_response(HOME_PAGE, history=[redirect_hop])
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = [poll, landing]
    flow = LoginFlow(session=session, settings=settings)

    result = flow.check_status(settings.login_qr_url)

    assert result is not None
    assert result.cookie == "remember_student_59ba36=tok3n"
    assert result.class_id == "777"
    assert result.class_ids == ("777", "888")
    assert flow.state is LoginState.COMPLETED
    method, url = session.request.call_args_list[1].args
    assert (method, url) == ("GET", "https://bj.k8n.cn/student/uidlogin?foo=bar")


def test_check_status_non_json_is_parse_error(settings):
    session = MagicMock(spec=requests.Session)
    session.request.return_value = make_response("<html>busy</html>")
    flow = LoginFlow(session=session, settings=settings)

    with pytest.raises(ParseError):
        flow.check_status()
    assert flow.state is LoginState.FAILED


def test_check_status_completed_without_url(settings):
    session = MagicMock(spec=requests.Session)
    session.request.return_value = make_response(json.dumps({"status": 1}))
    flow = LoginFlow(session=session, settings=settings)

    with pytest.raises(ExtractionError):
        flow.check_status()


def test_check_status_network_failure(settings):
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = requests.ConnectionError("reset")
    flow = LoginFlow(session=session, settings=settings)

    with pytest.raises(NetworkError):
        flow.check_status()


def test_expire_only_from_awaiting_scan(settings):
    flow = LoginFlow(session=MagicMock(spec=requests.Session), settings=settings)
    flow.expire()
    assert flow.state is LoginState.IDLE

    flow.state = LoginState.AWAITING_SCAN
    flow.expire()
    assert flow.state is LoginState.EXPIRED


@pytest.mark.parametrize(
    "redirect,expected",
    [
        ("https://x/y?foo=bar", "https://bj.k8n.cn/student/uidlogin?foo=bar"),
        ("/student/uidlogin?uid=1&token=t", "https://bj.k8n.cn/student/uidlogin?uid=1&token=t"),
        ("/nothing", "https://bj.k8n.cn/student/uidlogin?"),
    ],
)
def test_completion_url(redirect, expected):
    assert completion_url("https://bj.k8n.cn/student/uidlogin", redirect) == expected


def test_capture_cookie_falls_back_to_all_cookies():
    resp = make_response(cookies={"PHPSESSID": "abc"})

    assert capture_cookie(resp) == "PHPSESSID=abc"


def test_capture_cookie_without_cookies():
    with pytest.raises(ExtractionError):
        capture_cookie(make_response())


def test_extract_class_ids_empty_page():
    assert extract_class_ids("<html><body>no courses</body></html>") == ()


def test_login_page_is_retried_once_after_server_error(settings):
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = [
        make_response("Service Unavailable", status=503),
        make_response(LOGIN_PAGE),
    ]
    flow = LoginFlow(session=session, settings=settings)

    image, _ = flow.get_code()

    assert image.startswith(b"\x89PNG")
    assert session.request.call_count == 2


@pytest.mark.parametrize("status", ['"1"', "1.0", "true"])
def test_check_status_only_integer_one_completes(settings, status):
    session = MagicMock(spec=requests.Session)
    session.request.return_value = make_response(f'{{"status": {status}, "url": "https://x/y"}}')
    flow = LoginFlow(session=session, settings=settings)

    assert flow.check_status() is None
    assert session.request.call_count == 1
