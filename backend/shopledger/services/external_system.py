# Overview: Connector for the KKB back-office system (login, roster, closing, logout).

"""
KKB connector.

KKB is a session-based HTML back office. We drive it the way a browser
would: POST the login form, keep the session cookie, call two URL +
query-parameter endpoints, then POST the logout form.

Jobs only depend on the ExternalSystem interface, so tests and future
integrations can swap the scraping mechanics out:

    authenticate()                      -> None
    fetch_roster(date)                  -> list[RosterEntry]
    trigger_closing(shop_code, date)    -> None
    sign_out()                          -> None

Roster endpoint returns CSV (UTF-8, header row). Column names are mapped
to Shop fields by ROSTER_COLUMNS.
"""

from __future__ import annotations

import csv
import io
import time
from dataclasses import dataclass, field
from datetime import date

import httpx
from flask import current_app

from .errors import ExternalSystemFailure

# KKB CSV column -> Shop attribute
ROSTER_COLUMNS = {
    "shop_code": "code",
    "shop_name": "name",
    "formal_name": "formal_name",
    "shop_kana": "kana",
    "zip": "zip",
    "prefecture": "prefecture",
    "city": "city",
    "address1": "address1",
    "address2": "address2",
    "tel": "tel",
    "fax": "fax",
}


@dataclass
class RosterEntry:
    code: str
    fields: dict = field(default_factory=dict)


class ExternalSystem:
    """Interface the jobs talk to."""

    def authenticate(self) -> None:
        raise NotImplementedError

    def fetch_roster(self, on_date: date) -> list[RosterEntry]:
        raise NotImplementedError

    def trigger_closing(self, shop_code: str, on_date: date) -> None:
        raise NotImplementedError

    def sign_out(self) -> None:
        raise NotImplementedError


def parse_roster_csv(text: str) -> list[RosterEntry]:
    """
    Parse the roster CSV into entries.

    Rows without a shop code are skipped. Unknown columns are ignored;
    blank cells become None.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    entries: list[RosterEntry] = []
    for row in reader:
        code = (row.get("shop_code") or "").strip()
        if not code:
            continue
        fields = {}
        for column, attr in ROSTER_COLUMNS.items():
            if attr == "code" or column not in row:
                continue
            value = (row.get(column) or "").strip()
            fields[attr] = value or None
        entries.append(RosterEntry(code=code, fields=fields))
    return entries


class KkbClient(ExternalSystem):
    """httpx-backed KKB session. Not thread-safe; one instance per job run."""

    def __init__(
        self,
        *,
        base_url: str,
        user_code: str,
        password: str,
        login_path: str = "/login",
        logout_path: str = "/logout",
        roster_path: str = "/shops/list",
        closing_path: str = "/closing/run",
        settle_seconds: float = 3.0,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.user_code = user_code
        self.password = password
        self.login_path = login_path
        self.logout_path = logout_path
        self.roster_path = roster_path
        self.closing_path = closing_path
        self.settle_seconds = settle_seconds
        self.authenticated = False
        self._http = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config=None, **overrides) -> "KkbClient":
        config = config or current_app.config
        kwargs = dict(
            base_url=config["KKB_BASE_URL"],
            user_code=config["KKB_USER_CODE"],
            password=config["KKB_PASSWORD"],
            login_path=config["KKB_LOGIN_PATH"],
            logout_path=config["KKB_LOGOUT_PATH"],
            roster_path=config["KKB_ROSTER_PATH"],
            closing_path=config["KKB_CLOSING_PATH"],
            settle_seconds=config["KKB_LOGIN_SETTLE_SECONDS"],
            timeout=config["KKB_TIMEOUT_SECONDS"],
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ExternalSystemFailure(f"KKB {method} {path} failed", cause=exc)
        return response

    def authenticate(self) -> None:
        if not self.user_code or not self.password:
            raise ExternalSystemFailure("KKB credentials are not configured")
        response = self._request(
            "POST",
            self.login_path,
            data={"user_code": self.user_code, "password": self.password},
        )
        if not self._http.cookies:
            raise ExternalSystemFailure(
                f"KKB login returned {response.status_code} without a session cookie"
            )
        self.authenticated = True
        # KKB builds the session menu asynchronously after login
        if self.settle_seconds > 0:
            time.sleep(self.settle_seconds)

    def _ensure_authenticated(self) -> None:
        if not self.authenticated:
            self.authenticate()

    def fetch_roster(self, on_date: date) -> list[RosterEntry]:
        self._ensure_authenticated()
        response = self._request(
            "GET",
            self.roster_path,
            params={"date": on_date.strftime("%Y%m%d"), "format": "csv"},
        )
        return parse_roster_csv(response.text)

    def trigger_closing(self, shop_code: str, on_date: date) -> None:
        self._ensure_authenticated()
        self._request(
            "GET",
            self.closing_path,
            params={"shop_code": shop_code, "date": on_date.strftime("%Y%m%d")},
        )

    def sign_out(self) -> None:
        try:
            if self.authenticated:
                self._request("POST", self.logout_path)
        finally:
            self.authenticated = False
            self._http.close()


def build_external_system() -> ExternalSystem:
    """KKB client for the current app; EXTERNAL_SYSTEM_FACTORY overrides it."""
    factory = current_app.config.get("EXTERNAL_SYSTEM_FACTORY")
    if factory is not None:
        return factory()
    return KkbClient.from_config()


def sign_out_quietly(system: ExternalSystem) -> None:
    """Best-effort logout; failures are logged, never raised."""
    try:
        system.sign_out()
    except Exception:
        current_app.logger.warning("KKB sign-out failed", exc_info=True)
