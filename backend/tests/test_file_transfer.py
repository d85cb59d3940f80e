import ftplib
import json

import pytest

from shopledger.models import AppConfig
from shopledger.services.errors import ExternalSystemFailure, NotFound
from shopledger.services.file_transfer import (
    FTP_CONFIG_KEY,
    FtpUploader,
    get_config_document,
    set_config_document,
)


SETTINGS = {"host": "ftp.test", "user": "closing", "password": "pw", "directory": "/daily/"}


class FakeFTP:
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.calls = []
        self.stored = {}

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.fail_on == name:
            raise ftplib.error_perm(f"530 {name} refused")

    def connect(self, host, port, timeout=None):
        self._record("connect", host, port)

    def login(self, user, password):
        self._record("login", user)

    def set_pasv(self, passive):
        self._record("set_pasv", passive)

    def storbinary(self, command, fp):
        self._record("storbinary", command)
        self.stored[command] = fp.read()

    def quit(self):
        self._record("quit")

    def close(self):
        self._record("close")


def test_upload_json_stores_file_in_directory():
    ftp = FakeFTP()
    uploader = FtpUploader(SETTINGS, ftp_factory=lambda: ftp)

    remote = uploader.upload_json("0101_20240501.json", {"total": 1200, "shop": "銀座"})

    assert remote == "/daily/0101_20240501.json"
    assert ("connect", "ftp.test", 21) in ftp.calls
    assert ("set_pasv", True) in ftp.calls
    body = ftp.stored["STOR /daily/0101_20240501.json"]
    assert json.loads(body.decode("utf-8")) == {"total": 1200, "shop": "銀座"}
    assert ftp.calls[-1] == ("quit",)


def test_ftp_error_becomes_external_failure():
    ftp = FakeFTP(fail_on="login")
    uploader = FtpUploader(SETTINGS, ftp_factory=lambda: ftp)

    with pytest.raises(ExternalSystemFailure) as excinfo:
        uploader.upload_json("x.json", {})

    assert isinstance(excinfo.value.cause, ftplib.error_perm)
    assert "storbinary" not in [c[0] for c in ftp.calls]
    assert ftp.calls[-1] == ("quit",)


def test_missing_ftp_settings():
    with pytest.raises(NotFound):
        FtpUploader({"host": "ftp.test", "user": "closing"})


def test_config_documents(db_session):
    with pytest.raises(NotFound):
        get_config_document(FTP_CONFIG_KEY)

    set_config_document(FTP_CONFIG_KEY, {"host": "old"})
    set_config_document(FTP_CONFIG_KEY, SETTINGS)

    assert get_config_document(FTP_CONFIG_KEY) == SETTINGS
    assert db_session.query(AppConfig).count() == 1

    uploader = FtpUploader.from_config_document()
    assert uploader.settings["host"] == "ftp.test"


def test_config_document_masks_secrets(db_session):
    row = set_config_document(FTP_CONFIG_KEY, SETTINGS)

    masked = row.to_dict()["value"]
    assert masked["password"] == "***"
    assert masked["user"] == "closing"
    assert row.to_dict(include_secrets=True)["value"]["password"] == "pw"
