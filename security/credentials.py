import hashlib
import secrets

import bcrypt

MIN_PASSWORD_LENGTH = 8

def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or len(plain_password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    # bcrypt expects bytes
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")

def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False

def new_token() -> str:
    return secrets.token_urlsafe(32)

def hash_token(token: str) -> str:
    # SHA-256 is fine for hashing random bearer tokens
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
