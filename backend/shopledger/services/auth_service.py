# Overview: Service-layer operations for login identities and role claims.

"""
Authentication identities and account provisioning.

Every shop gets a login identity whose email is derived from its shop code
("0101" -> "0101@ebondregister.com"). Provisioning is idempotent: an
existing identity is never modified, so re-running the shop sync cannot
reset a password or a role a manager has changed by hand.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Explicit passwords must meet the strength rules below
- Generated shop passwords are random; operators reset them via the CLI
"""

import re
import secrets

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, Role, UserRole
from .errors import NotFound

SHOP_ROLE = "shop"

DEFAULT_ROLES = [
    ("admin", "Head office: every shop, every master"),
    ("manager", "Area manager: reports and masters"),
    (SHOP_ROLE, "Shop terminal: its own register and stock"),
]


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AccountExistsError(Exception):
    """Raised when an identity with the same email already exists."""

    def __init__(self, user: User):
        super().__init__(f"user already exists: {user.email}")
        self.user = user


def email_from_code(code: str) -> str:
    domain = current_app.config.get("SHOP_EMAIL_DOMAIN", "ebondregister.com")
    return f"{code}@{domain}"


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Validate then hash with bcrypt (cost factor BCRYPT_ROUNDS, default 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def generate_password() -> str:
    # token_urlsafe alone may miss a character class
    return secrets.token_urlsafe(12) + "Aa1"


def get_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=email).first()


def get_user_by_code(code: str) -> User:
    """Identity for a shop code; NotFound when none was provisioned."""
    user = get_user_by_email(email_from_code(code))
    if user is None:
        raise NotFound(f"no user for code {code}")
    return user


def create_user(username: str, email: str, password: str, commit: bool = True) -> User:
    """
    Create an identity with a bcrypt password hash.

    With commit=False the row is only flushed and belongs to the caller's
    transaction.

    Raises AccountExistsError if the email is taken,
    PasswordValidationError if the password is weak.
    """
    existing = get_user_by_email(email)
    if existing:
        raise AccountExistsError(existing)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    if not commit:
        db.session.flush()
        return user
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with another provisioning run
        db.session.rollback()
        existing = get_user_by_email(email)
        if existing is None:
            raise
        raise AccountExistsError(existing)
    return user


def set_password(user: User, password: str) -> User:
    user.password_hash = hash_password(password)
    db.session.commit()
    return user


def assign_role(user_id: int, role_name: str, commit: bool = True) -> UserRole:
    """Assign role to user."""
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} not found")

    existing = db.session.query(UserRole).filter_by(
        user_id=user_id,
        role_id=role.id
    ).first()

    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id)

    db.session.add(user_role)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user_role


def create_default_roles(commit: bool = True):
    """Create standard roles if they don't exist."""
    for name, desc in DEFAULT_ROLES:
        existing = db.session.query(Role).filter_by(name=name).first()
        if not existing:
            db.session.add(Role(name=name, description=desc))
    if commit:
        db.session.commit()
    else:
        db.session.flush()


def ensure_shop_account(code: str, commit: bool = True) -> tuple[User, bool]:
    """
    Make sure a login identity exists for a shop code.

    Returns (user, created). "Already exists" is not an error: the existing
    identity is returned untouched with created=False. A new identity gets a
    random password and the "shop" role claim.

    commit=False leaves the identity and its role in the open transaction so
    the shop sync can commit them together with the shop rows.
    """
    email = email_from_code(code)
    try:
        user = create_user(username=code, email=email, password=generate_password(), commit=commit)
    except AccountExistsError as exc:
        return exc.user, False

    create_default_roles(commit=commit)
    assign_role(user.id, SHOP_ROLE, commit=commit)
    return user, True
