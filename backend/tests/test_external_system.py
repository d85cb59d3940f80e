from datetime import date

import httpx
import pytest

from shopledger.services.errors import ExternalSystemFailure
from shopledger.services.external_system import KkbClient, parse_roster_csv


ROSTER_CSV = (
    "\ufeffshop_code,shop_name,prefecture,tel,unused\n"
    "0101,Ginza,Tokyo,03-0000-0000,x\n"
    ",No Code,Osaka,,x\n"
    "0102,Umeda,Osaka,,x\n"
)


def make_client(handler, **overrides):
    kwargs = dict(
        base_url="http://kkb.test",
        user_code="ops",
        password="pw",
        settle_seconds=0,
        transport=httpx.MockTransport(handler),
    )
    kwargs.update(overrides)
    return KkbClient(**kwargs)


class KkbStub:
    """Minimal KKB: cookie on login, CSV roster, closing and logout."""

    def __init__(self, login_cookie=True, roster_status=200):
        self.login_cookie = login_cookie
        self.roster_status = roster_status
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        path = request.url.path
        if path == "/login":
            headers = {"set-cookie": "KKBSESSION=abc123; Path=/"} if self.login_cookie else {}
            return httpx.Response(200, headers=headers, text="<html>menu</html>")
        if path == "/shops/list":
            return httpx.Response(self.roster_status, text=ROSTER_CSV)
        if path in ("/closing/run", "/logout"):
            return httpx.Response(200, text="ok")
        return httpx.Response(404)

    @property
    def paths(self):
        return [r.url.path for r in self.requests]


def test_parse_roster_csv_skips_rows_without_code():
    entries = parse_roster_csv(ROSTER_CSV)

    assert [e.code for e in entries] == ["0101", "0102"]
    assert entries[0].fields == {"name": "Ginza", "prefecture": "Tokyo", "tel": "03-0000-0000"}
    # blank cells become None
    assert entries[1].fields["tel"] is None


def test_login_roster_logout():
    stub = KkbStub()
    client = make_client(stub)

    client.authenticate()
    entries = client.fetch_roster(date(2024, 5, 1))
    client.sign_out()

    assert stub.paths == ["/login", "/shops/list", "/logout"]
    login = stub.requests[0]
    assert login.method == "POST"
    assert b"user_code=ops" in login.content
    roster = stub.requests[1]
    assert roster.url.params["date"] == "20240501"
    assert roster.url.params["format"] == "csv"
    assert "KKBSESSION=abc123" in roster.headers["cookie"]
    assert [e.code for e in entries] == ["0101", "0102"]


def test_trigger_closing_sends_shop_and_date():
    stub = KkbStub()
    client = make_client(stub)

    client.trigger_closing("0101", date(2024, 5, 1))

    closing = stub.requests[-1]
    assert closing.url.path == "/closing/run"
    assert closing.url.params["shop_code"] == "0101"
    assert closing.url.params["date"] == "20240501"


def test_login_without_cookie_fails():
    client = make_client(KkbStub(login_cookie=False))

    with pytest.raises(ExternalSystemFailure) as excinfo:
        client.authenticate()
    assert excinfo.value.retryable is True
    assert client.authenticated is False


def test_missing_credentials_fail_before_any_request():
    stub = KkbStub()
    client = make_client(stub, password="")

    with pytest.raises(ExternalSystemFailure):
        client.authenticate()
    assert stub.requests == []


def test_http_error_becomes_external_failure():
    client = make_client(KkbStub(roster_status=500))
    client.authenticate()

    with pytest.raises(ExternalSystemFailure) as excinfo:
        client.fetch_roster(date(2024, 5, 1))
    assert isinstance(excinfo.value.cause, httpx.HTTPStatusError)


def test_sign_out_without_login_sends_nothing():
    stub = KkbStub()
    client = make_client(stub)

    client.sign_out()

    assert stub.requests == []
