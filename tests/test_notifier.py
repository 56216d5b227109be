import json
from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests

from autocheckin.errors import AuthError, NetworkError, ParseError, RemoteRejection
from autocheckin.models import WeComConfig
from autocheckin.notifier import WeComNotifier, format_message

from conftest import make_response

WECOM = WeComConfig(enable=True, corpid="ww123", secret="s3cret", agentid="1000002", touser="@all")


def test_disabled_notifier_makes_no_http_call(settings):
    session = MagicMock(spec=requests.Session)
    notifier = WeComNotifier(WeComConfig(enable=False), session=session, settings=settings)

    assert notifier.notify("title", "content") is None
    assert session.request.call_count == 0


def test_notify_fetches_token_then_sends(settings):
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = [
        make_response(json.dumps({"errcode": 0, "access_token": "TOKEN"})),
        make_response(json.dumps({"errcode": 0, "errmsg": "ok"})),
    ]
    notifier = WeComNotifier(WECOM, session=session, settings=settings)

    notifier.notify("Physics Check-in Result", "Task [Physics] Result: 签到成功")

    token_call, send_call = session.request.call_args_list
    assert token_call.args == ("GET", "https://qyapi.weixin.qq.com/cgi-bin/gettoken")
    assert token_call.kwargs["params"] == {"corpid": "ww123", "corpsecret": "s3cret"}
    assert send_call.args == ("POST", "https://qyapi.weixin.qq.com/cgi-bin/message/send")
    assert send_call.kwargs["params"] == {"access_token": "TOKEN"}
    payload = send_call.kwargs["json"]
    assert payload["touser"] == "@all"
    assert payload["msgtype"] == "text"
    assert payload["agentid"] == "1000002"
    assert "Physics Check-in Result" in payload["text"]["content"]
    assert "签到成功" in payload["text"]["content"]


def test_token_is_fetched_for_every_notification(settings):
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = [
        make_response(json.dumps({"access_token": "A"})),
        make_response(json.dumps({"errcode": 0})),
        make_response(json.dumps({"access_token": "B"})),
        make_response(json.dumps({"errcode": 0})),
    ]
    notifier = WeComNotifier(WECOM, session=session, settings=settings)

    notifier.notify("t1", "c1")
    notifier.notify("t2", "c2")

    assert session.request.call_count == 4


def test_missing_token_is_auth_error(settings):
    session = MagicMock(spec=requests.Session)
    session.request.return_value = make_response(
        json.dumps({"errcode": 40001, "errmsg": "invalid credential"})
    )
    notifier = WeComNotifier(WECOM, session=session, settings=settings)

    with pytest.raises(AuthError):
        notifier.notify("t", "c")
    assert session.request.call_count == 1


def test_nonzero_errcode_is_rejection_with_raw_reply(settings):
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = [
        make_response(json.dumps({"access_token": "TOKEN"})),
        make_response(json.dumps({"errcode": 81013, "errmsg": "user invalid"})),
    ]
    notifier = WeComNotifier(WECOM, session=session, settings=settings)

    with pytest.raises(RemoteRejection, match="81013"):
        notifier.notify("t", "c")


def test_non_json_reply_is_parse_error(settings):
    session = MagicMock(spec=requests.Session)
    session.request.return_value = make_response("<html>502</html>")
    notifier = WeComNotifier(WECOM, session=session, settings=settings)

    with pytest.raises(ParseError):
        notifier.notify("t", "c")


def test_format_message_layout():
    text = format_message("Title", "Body", now=datetime(2026, 10, 18, 8, 5, 0))

    assert text == "【AutoCheckin】\nTitle\n----------------\nBody\nTime: 2026-10-18 08:05:00"


def test_connection_error_keeps_credentials_out_of_the_message(settings):
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = requests.ConnectionError(
        "Max retries exceeded with url: /cgi-bin/gettoken?corpid=ww123&corpsecret=s3cret"
    )
    notifier = WeComNotifier(WECOM, session=session, settings=settings)

    with pytest.raises(NetworkError) as exc_info:
        notifier.notify("t", "c")

    assert "s3cret" not in str(exc_info.value)
    assert "ConnectionError" in str(exc_info.value)


def test_server_error_on_send_is_not_retried(settings):
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = [
        make_response(json.dumps({"access_token": "TOKEN"})),
        make_response("Service Unavailable", status=503),
    ]
    notifier = WeComNotifier(WECOM, session=session, settings=settings)

    with pytest.raises(NetworkError, match="503") as exc_info:
        notifier.notify("t", "c")

    assert "TOKEN" not in str(exc_info.value)
    assert session.request.call_count == 2
