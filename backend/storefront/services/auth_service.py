# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Uses bcrypt for password hashing and validates password strength.

ROLES: a user's role is their account_type (customer, admin, super_admin).
Permissions are derived from the role, never stored, and the role is never
guessed from the email address.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum length comes from the passwordMinLength store setting (default 8)
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re
import secrets
from dataclasses import dataclass

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, ACCOUNT_TYPES
from ..validation import ConflictError, ValidationError
from . import session_service
from storefront.time_utils import utcnow


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ADMIN_PERMISSIONS = [
    "read:products",
    "write:products",
    "read:orders",
    "write:orders",
    "read:users",
    "read:analytics",
    "read:settings",
    "write:settings",
]

ROLE_PERMISSIONS = {
    "super_admin": ["*"],
    "admin": ADMIN_PERMISSIONS,
    "customer": ["read:products"],
}


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


@dataclass
class SignUpResult:
    """
    Successful sign-up.

    confirmation_required is a success variant: the account exists but no
    session is issued until the email is confirmed.
    """
    user: User
    token: str | None = None
    confirmation_required: bool = False

    @property
    def message(self) -> str | None:
        if self.confirmation_required:
            return "Please check your email and click the confirmation link before logging in."
        return None


def validate_password_strength(password: str, min_length: int = 8) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - At least min_length characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < min_length:
        raise PasswordValidationError(f"Password must be at least {min_length} characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _password_min_length() -> int:
    from .settings_service import get_setting
    return get_setting("passwordMinLength")


def hash_password(password: str, min_length: int | None = None) -> str:
    """
    Hash password using bcrypt (cost factor BCRYPT_LOG_ROUNDS, 12 by default).

    Password is validated for strength before hashing.
    """
    if min_length is None:
        min_length = _password_min_length()
    validate_password_strength(password, min_length)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed hashes verify as False.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def generate_random_password() -> str:
    """Strong throwaway password for guest accounts."""
    return secrets.token_urlsafe(18) + "Aa1!"


def normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email address is required", fields={"email": "Invalid email"})
    return email


def resolve_role(user: User | None) -> str:
    if user is None or user.account_type not in ACCOUNT_TYPES:
        return "customer"
    return user.account_type


def permissions_for(role: str) -> list[str]:
    return list(ROLE_PERMISSIONS.get(role, ROLE_PERMISSIONS["customer"]))


def has_permission(user: User | None, permission_code: str) -> bool:
    if user is None:
        return False
    granted = permissions_for(resolve_role(user))
    return "*" in granted or permission_code in granted


def cached_user(user: User) -> dict:
    """The authenticated-user record clients cache (memory, local file, cookie)."""
    role = resolve_role(user)
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": role,
        "permissions": permissions_for(role),
    }


def create_user(
    email: str,
    password: str,
    first_name: str = "User",
    last_name: str = "",
    account_type: str = "customer",
    is_guest: bool = False,
    phone: str | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises PasswordValidationError for weak passwords and ConflictError when
    the email is already registered.
    """
    email = normalize_email(email)
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError(f"account_type must be one of {', '.join(ACCOUNT_TYPES)}")

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("An account with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=(first_name or "User").strip(),
        last_name=(last_name or "").strip(),
        account_type=account_type,
        is_guest=is_guest,
        phone=phone,
    )

    db.session.add(user)
    db.session.commit()
    return user


def sign_in(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    email = (email or "").strip().lower()
    user = db.session.query(User).filter(
        User.email == email,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def sign_up(
    email: str,
    password: str,
    first_name: str = "User",
    last_name: str = "",
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> SignUpResult:
    """
    Register a customer account.

    With REQUIRE_EMAIL_CONFIRMATION the result carries no token and
    confirmation_required=True.
    """
    user = create_user(email, password, first_name=first_name, last_name=last_name)

    if current_app.config.get("REQUIRE_EMAIL_CONFIRMATION", False):
        return SignUpResult(user=user, confirmation_required=True)

    _, token = session_service.create_session(user.id, user_agent=user_agent, ip_address=ip_address)
    return SignUpResult(user=user, token=token)
