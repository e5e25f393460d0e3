"""
User accounts: registration, login, profile, addresses and password reset.

Validation problems raise ``errors.ValidationError`` with a message meant for
the person filling in the form.
"""
import logging
import re
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError
from werkzeug.security import check_password_hash, generate_password_hash

from database import create_document, utcnow
from errors import NotFoundError, ValidationError
from schemas import Address, User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
RESET_TOKEN_TTL = timedelta(hours=1)
ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def password_problem(password: str) -> Optional[str]:
    """Why ``password`` is too weak, or None if it is acceptable."""
    if len(password or "") < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
    if not re.search(r"[A-Za-z]", password) or not re.search(r"\d", password):
        return "Password must contain at least one letter and one number."
    return None


def check_new_password(password: str, confirm: str) -> None:
    if password != confirm:
        raise ValidationError("Passwords do not match.")
    problem = password_problem(password)
    if problem:
        raise ValidationError(problem)


def session_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """The slice of a user document kept in the session."""
    return {
        "user_id": user["user_id"],
        "email": user["email"],
        "first_name": user.get("first_name", ""),
        "last_name": user.get("last_name", ""),
        "role": user.get("role", ROLE_CUSTOMER),
    }


def get_user(db: Database, user_id: str) -> Dict[str, Any]:
    user = db["users"].find_one({"user_id": user_id})
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def register(
    db: Database,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    confirm: str,
    role: str = ROLE_CUSTOMER,
) -> Dict[str, Any]:
    first_name, last_name = first_name.strip(), last_name.strip()
    email = normalize_email(email)
    if not first_name or not last_name or not email:
        raise ValidationError("All fields are required.")
    if not _EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address.")
    check_new_password(password, confirm)
    if db["users"].find_one({"email": email}, {"_id": 1}):
        raise ValidationError("An account with that email already exists.")

    user = User(
        user_id=str(uuid.uuid4()),
        email=email,
        first_name=first_name,
        last_name=last_name,
        password_hash=generate_password_hash(password),
        role=role,
    )
    try:
        create_document(db, "users", user)
    except DuplicateKeyError:
        raise ValidationError("An account with that email already exists.")
    logger.info("Registered user %s (%s)", user.user_id, role)
    return user.model_dump()


def authenticate(db: Database, email: str, password: str) -> Optional[Dict[str, Any]]:
    user = db["users"].find_one({"email": normalize_email(email)})
    if user is None or not check_password_hash(user.get("password_hash", ""), password or ""):
        return None
    return user


def update_profile(db: Database, user_id: str, first_name: str, last_name: str) -> None:
    first_name, last_name = first_name.strip(), last_name.strip()
    if not first_name or not last_name:
        raise ValidationError("First and last name cannot be empty.")
    db["users"].update_one(
        {"user_id": user_id},
        {"$set": {"first_name": first_name, "last_name": last_name, "updated_at": utcnow()}},
    )


def change_password(db: Database, user_id: str, current: str, new: str, confirm: str) -> None:
    if new != confirm:
        raise ValidationError("New passwords do not match.")
    user = get_user(db, user_id)
    if not check_password_hash(user.get("password_hash", ""), current or ""):
        raise ValidationError("Incorrect current password.")
    problem = password_problem(new)
    if problem:
        raise ValidationError(problem)
    db["users"].update_one(
        {"user_id": user_id},
        {"$set": {"password_hash": generate_password_hash(new), "updated_at": utcnow()}},
    )


# Addresses


def _clean_address(address_id: str, fields: Dict[str, Any]) -> Address:
    required = ("first_name", "last_name", "address", "country")
    if any(not str(fields.get(name) or "").strip() for name in required):
        raise ValidationError("Name, address and country are required.")
    return Address(
        address_id=address_id,
        first_name=fields["first_name"].strip(),
        last_name=fields["last_name"].strip(),
        address=fields["address"].strip(),
        country=fields["country"].strip(),
        state=(fields.get("state") or "").strip(),
        zip=(fields.get("zip") or "").strip(),
        phone=(fields.get("phone") or "").strip(),
        is_default=bool(fields.get("is_default")),
    )


def _save_addresses(db: Database, user_id: str, addresses: List[Dict[str, Any]]) -> None:
    db["users"].update_one({"user_id": user_id}, {"$set": {"addresses": addresses, "updated_at": utcnow()}})


def add_address(db: Database, user_id: str, fields: Dict[str, Any]) -> str:
    address = _clean_address(str(uuid.uuid4()), fields)
    addresses = list(get_user(db, user_id).get("addresses") or [])
    if address.is_default:
        addresses = [dict(a, is_default=False) for a in addresses]
    addresses.append(address.model_dump())
    _save_addresses(db, user_id, addresses)
    return address.address_id


def edit_address(db: Database, user_id: str, address_id: str, fields: Dict[str, Any]) -> None:
    address = _clean_address(address_id, fields)
    addresses = list(get_user(db, user_id).get("addresses") or [])
    if not any(a.get("address_id") == address_id for a in addresses):
        raise NotFoundError("Address", address_id)
    updated = []
    for existing in addresses:
        if existing.get("address_id") == address_id:
            existing = address.model_dump()
        elif address.is_default:
            existing = dict(existing, is_default=False)
        updated.append(existing)
    _save_addresses(db, user_id, updated)


def delete_address(db: Database, user_id: str, address_id: str) -> None:
    db["users"].update_one({"user_id": user_id}, {"$pull": {"addresses": {"address_id": address_id}}})


# Password reset


def start_password_reset(db: Database, email: str) -> Optional[Dict[str, Any]]:
    """Issue a reset token for ``email``; returns the user with its token, or None."""
    user = db["users"].find_one({"email": normalize_email(email)})
    if user is None:
        return None
    token = str(uuid.uuid4())
    expiry = utcnow() + RESET_TOKEN_TTL
    db["users"].update_one({"_id": user["_id"]}, {"$set": {"reset_token": token, "reset_expiry": expiry}})
    user.update(reset_token=token, reset_expiry=expiry)
    return user


def find_by_reset_token(db: Database, token: str) -> Optional[Dict[str, Any]]:
    return db["users"].find_one({"reset_token": token, "reset_expiry": {"$gt": utcnow()}})


def reset_password(db: Database, token: str, password: str, confirm: str) -> None:
    user = find_by_reset_token(db, token)
    if user is None:
        raise ValidationError("Password reset link is invalid or has expired.")
    check_new_password(password, confirm)
    db["users"].update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password_hash": generate_password_hash(password), "updated_at": utcnow()},
            "$unset": {"reset_token": "", "reset_expiry": ""},
        },
    )
    logger.info("Password reset for user %s", user["user_id"])
