"""
Account credentials for storefront users.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_CUSTOMER, ROLES
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError
from . import session_service


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

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

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (strength validated first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    email: str,
    password: str,
    name: str | None = None,
    role: str = ROLE_CUSTOMER,
) -> User:
    """
    Create a new account.

    Raises:
        ValidationError: malformed email or unknown role
        ConflictError: email already registered
        PasswordValidationError: password doesn't meet requirements
    """
    email = normalize_email(email)
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("A valid email is required")
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ConflictError("Email already registered")

    user = User(
        email=email,
        name=(name or "").strip() or None,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def set_role(email: str, role: str) -> User:
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user:
        raise ValidationError("User not found")
    if user.role != role:
        user.role = role
        db.session.commit()
        session_service.revoke_all_user_sessions(user.id, reason="Role changed")
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
