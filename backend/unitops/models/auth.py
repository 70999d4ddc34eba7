from __future__ import annotations

from ..extensions import db
from ..permissions import CAPABILITY_FLAGS
from ..time_utils import to_utc_z


class User(db.Model):
    """
    User accounts for authentication and attribution.

    Login names are globally unique. A user owns at most one PageAccess row
    and any number of UnitAccess links.

    SUPER-ADMIN: is_super_admin marks the operator who sees every unit and is
    the only identity allowed to administer units and products. That account
    can never be deleted.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    # Display name shown in the UI and carried in the session
    name = db.Column(db.String(128), nullable=False)
    user_name = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    active = db.Column(db.Boolean, nullable=False, default=True)
    is_super_admin = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    page_access = db.relationship(
        "PageAccess",
        uselist=False,
        back_populates="user",
        cascade="all, delete-orphan",
    )
    unit_access = db.relationship(
        "UnitAccess",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy=True,
    )
    session_tokens = db.relationship(
        "SessionToken",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "user_name": self.user_name,
            "active": self.active,
            "is_super_admin": self.is_super_admin,
            "unit_ids": sorted(link.unit_id for link in self.unit_access),
            "page_access": (self.page_access or PageAccess()).flags(),
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class PageAccess(db.Model):
    """
    Per-user page capability flags.

    One row per user at most; a missing row means every flag is false.
    Column names are listed in permissions.CAPABILITY_FLAGS.
    """
    __tablename__ = "page_access"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    pg_sales = db.Column(db.Boolean, nullable=False, default=False)
    pg_sales_confirm = db.Column(db.Boolean, nullable=False, default=False)
    pg_sales_overview = db.Column(db.Boolean, nullable=False, default=False)
    pg_expenses = db.Column(db.Boolean, nullable=False, default=False)
    pg_expenses_view = db.Column(db.Boolean, nullable=False, default=False)
    pg_result = db.Column(db.Boolean, nullable=False, default=False)
    pg_business = db.Column(db.Boolean, nullable=False, default=False)
    pg_admin = db.Column(db.Boolean, nullable=False, default=False)

    user = db.relationship("User", back_populates="page_access")

    def flags(self) -> dict[str, bool]:
        """Flag columns as a plain dict; unset columns read as False."""
        return {column: bool(getattr(self, column)) for column in CAPABILITY_FLAGS.values()}

    def to_dict(self) -> dict:
        return {"user_id": self.user_id, **self.flags()}


class UnitAccess(db.Model):
    """User -> Unit allow-list link."""
    __tablename__ = "unit_access"
    __table_args__ = (
        db.UniqueConstraint("user_id", "unit_id", name="uq_unit_access_user_unit"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)

    user = db.relationship("User", back_populates="unit_access")
    unit = db.relationship("Unit", backref=db.backref("user_access", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "unit_id": self.unit_id,
        }


class SessionToken(db.Model):
    """
    Opaque login session.

    Tokens are 32 random bytes (64 hex chars); only the SHA-256 hash is stored.
    The identity claim (display name, super-admin flag, page access) is
    captured at login and served unchanged for the session lifetime, so admin
    edits to a user's flags take effect on the next login.
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Claim snapshot taken at login
    display_name = db.Column(db.String(128), nullable=False)
    is_super_admin = db.Column(db.Boolean, nullable=False, default=False)
    page_access = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", back_populates="session_tokens")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "display_name": self.display_name,
            "is_super_admin": self.is_super_admin,
            "created_at": to_utc_z(self.created_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }
