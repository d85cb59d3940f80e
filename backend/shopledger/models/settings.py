from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


class AppConfig(db.Model):
    """
    Runtime configuration documents (e.g. key "ftp" holds the closing report
    upload target). Secrets live here rather than in environment variables
    so operators can rotate them without a redeploy.
    """
    __tablename__ = "app_configs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False, unique=True, index=True)
    value_json = db.Column(db.JSON, nullable=False, default=dict)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # Keys inside value_json that to_dict() masks
    SENSITIVE_KEYS = ("password", "secret", "token")

    def to_dict(self, include_secrets: bool = False) -> dict:
        value = dict(self.value_json or {})
        if not include_secrets:
            for k in list(value):
                if any(s in k.lower() for s in self.SENSITIVE_KEYS):
                    value[k] = "***"
        return {
            "key": self.key,
            "value": value,
            "updated_at": to_utc_z(self.updated_at),
        }
