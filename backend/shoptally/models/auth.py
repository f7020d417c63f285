from __future__ import annotations

from ..extensions import db
from shoptally.time_utils import to_utc_z

DEFAULT_BUSINESS_ID = "default"


class User(db.Model):
    """
    Account that owns catalog, sales and expenses.

    Registration, login and password handling live outside this service;
    the row exists so sessions and scoped data have an owner.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    company_name = db.Column(db.String(255), nullable=True)

    # Business profile the user last switched to; 'default' covers legacy unscoped data
    active_business_id = db.Column(db.String(64), nullable=False, default=DEFAULT_BUSINESS_ID)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "company_name": self.company_name,
            "active_business_id": self.active_business_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class BusinessProfile(db.Model):
    """
    Named sub-business of a user. Everything a user owns is partitioned by
    (user_id, business_id).
    """
    __tablename__ = "business_profiles"
    __table_args__ = (
        db.UniqueConstraint("user_id", "business_id", name="uq_business_profiles_user_business"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    business_id = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    # NULL -> use Config.LOW_STOCK_THRESHOLD
    low_stock_threshold = db.Column(db.Integer, nullable=True)

    user = db.relationship("User", backref=db.backref("business_profiles", lazy=True))

    def to_dict(self) -> dict:
        return {
            "business_id": self.business_id,
            "name": self.name,
            "low_stock_threshold": self.low_stock_threshold,
        }


class SessionToken(db.Model):
    """
    Bearer session for API calls.

    Tokens are stored as SHA-256 hashes; the plaintext is only ever returned
    to the client once, at issue time.
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
