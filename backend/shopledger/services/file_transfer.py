# Overview: FTP upload of closing reports; credentials come from the "ftp" config document.

from __future__ import annotations

import ftplib
import io
import json

from flask import current_app

from ..extensions import db
from ..models import AppConfig
from .errors import ExternalSystemFailure, NotFound

FTP_CONFIG_KEY = "ftp"
REQUIRED_FTP_KEYS = ("host", "user", "password")


def get_config_document(key: str) -> dict:
    row = db.session.query(AppConfig).filter_by(key=key).first()
    if row is None:
        raise NotFound(f"config document {key!r} not found")
    return dict(row.value_json or {})


def set_config_document(key: str, value: dict) -> AppConfig:
    row = db.session.query(AppConfig).filter_by(key=key).first()
    if row is None:
        row = AppConfig(key=key, value_json=value)
        db.session.add(row)
    else:
        row.value_json = value
    db.session.commit()
    return row


def build_uploader():
    """FTP uploader for the closing report; CLOSING_UPLOADER_FACTORY overrides it."""
    factory = current_app.config.get("CLOSING_UPLOADER_FACTORY")
    if factory is not None:
        return factory()
    return FtpUploader.from_config_document()


class FtpUploader:
    """
    Uploads one JSON file per call.

    settings: {"host", "user", "password", "port"?, "directory"?, "passive"?}
    """

    def __init__(self, settings: dict, timeout: float = 30.0, ftp_factory=ftplib.FTP):
        missing = [k for k in REQUIRED_FTP_KEYS if not settings.get(k)]
        if missing:
            raise NotFound(f"ftp config is missing {', '.join(missing)}")
        self.settings = settings
        self.timeout = timeout
        self.ftp_factory = ftp_factory

    @classmethod
    def from_config_document(cls) -> "FtpUploader":
        return cls(
            get_config_document(FTP_CONFIG_KEY),
            timeout=current_app.config.get("FTP_TIMEOUT_SECONDS", 30.0),
        )

    def upload_json(self, filename: str, payload: dict) -> str:
        """Store payload as <directory>/<filename>; returns the remote path."""
        body = json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")
        directory = (self.settings.get("directory") or "").rstrip("/")
        remote_path = f"{directory}/{filename}" if directory else filename
        ftp = self.ftp_factory()
        try:
            ftp.connect(self.settings["host"], int(self.settings.get("port") or 21), timeout=self.timeout)
            ftp.login(self.settings["user"], self.settings["password"])
            ftp.set_pasv(bool(self.settings.get("passive", True)))
            ftp.storbinary(f"STOR {remote_path}", io.BytesIO(body))
        except (ftplib.all_errors) as exc:
            raise ExternalSystemFailure(f"FTP upload of {remote_path} failed", cause=exc)
        finally:
            try:
                ftp.quit()
            except ftplib.all_errors:
                ftp.close()
        return remote_path
