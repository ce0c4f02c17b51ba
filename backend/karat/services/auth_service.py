# Overview: Service-layer operations for staff accounts; bcrypt password hashing and login.

"""
Authentication Service

Staff accounts belong to one shop. Username and email are unique within
the shop. Passwords are bcrypt hashes (cost 12) and must pass the strength
rules below before they are hashed.
"""

import re

import bcrypt

from ..extensions import db
from ..models import Shop, User
from ..models.auth import ROLE_SALES, VALID_ROLES
from karat.time_utils import utcnow
from karat.validation import parse_choice
from .errors import InvalidInputError, NotFoundError


BCRYPT_ROUNDS = 12


class PasswordValidationError(InvalidInputError):
    """Password does not meet the strength rules."""


def validate_password_strength(password: str) -> None:
    """
    - At least 8 characters
    - Upper case, lower case, digit and special character each present
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check; a malformed stored hash counts as a mismatch."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_shop(name: str, code: str | None = None) -> Shop:
    if not isinstance(name, str) or not name.strip():
        raise InvalidInputError("Shop name is required")
    if code and db.session.query(Shop).filter_by(code=code).first():
        raise InvalidInputError(f"Shop code {code} already exists")

    shop = Shop(name=name.strip(), code=code)
    db.session.add(shop)
    db.session.commit()
    return shop


def create_user(
    shop_id: int,
    username: str,
    email: str,
    password: str,
    *,
    role: str = ROLE_SALES,
    name: str | None = None,
) -> User:
    """
    Create a staff account in a shop.

    Raises:
        NotFoundError: shop missing
        InvalidInputError: shop inactive, duplicate username/email, bad role
        PasswordValidationError: weak password
    """
    shop = db.session.query(Shop).filter_by(id=shop_id).first()
    if not shop:
        raise NotFoundError("Shop not found")
    if not shop.is_active:
        raise InvalidInputError("Shop is not active")

    role = parse_choice("role", role, VALID_ROLES)
    if not username or not email:
        raise InvalidInputError("username and email are required")

    existing = db.session.query(User).filter(
        User.shop_id == shop_id,
        db.or_(User.username == username, User.email == email),
    ).first()
    if existing:
        raise InvalidInputError("Username or email already exists in this shop")

    user = User(
        shop_id=shop_id,
        username=username,
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str, shop_id: int | None = None) -> User | None:
    """
    Check credentials (username or email) and stamp last_login_at.

    Returns None on any failure, including an inactive user or shop.
    """
    if not username or not password:
        return None

    query = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    )
    if shop_id is not None:
        query = query.filter(User.shop_id == shop_id)

    user = query.first()
    if not user:
        return None

    if not user.shop or not user.shop.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
