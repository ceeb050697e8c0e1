import hashlib
import hmac
import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from unibon.models.tables import Account

PBKDF2_ITERATIONS = 1000
PBKDF2_KEY_LENGTH = 64


class EmailAlreadyRegistered(Exception):
    pass


def hash_password(password: str) -> str:
    """PBKDF2-HMAC-SHA512, stored as "salt:hash" in hex."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha512", password.encode(), salt.encode(), PBKDF2_ITERATIONS, PBKDF2_KEY_LENGTH
    ).hex()
    return f"{salt}:{digest}"


def verify_password(password: str, hashed_password: str) -> bool:
    salt, _, expected = hashed_password.partition(":")
    if not salt or not expected:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha512", password.encode(), salt.encode(), PBKDF2_ITERATIONS, PBKDF2_KEY_LENGTH
    ).hex()
    return hmac.compare_digest(digest, expected)


def find_account_by_email(db: Session, email: str) -> Optional[Account]:
    return db.scalar(select(Account).where(Account.email == email))


def find_account_by_id(db: Session, account_id: str) -> Optional[Account]:
    return db.get(Account, account_id)


def create_account(db: Session, email: str, password: str, name: str, commit: bool = True) -> Account:
    """
    Create an account with a hashed password.

    Raises EmailAlreadyRegistered if the email is taken.
    """
    if find_account_by_email(db, email):
        raise EmailAlreadyRegistered(email)

    account = Account(email=email, password=hash_password(password), name=name)
    db.add(account)
    if commit:
        db.commit()
        db.refresh(account)
    else:
        db.flush()
    return account


def sanitize_account(account: Account) -> dict:
    """Public view of an account (no password hash)."""
    return {
        "id": account.id,
        "email": account.email,
        "name": account.name,
        "createdAt": account.created_at,
    }
