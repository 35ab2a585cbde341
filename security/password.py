import bcrypt
from flask import current_app

def _rounds() -> int:
    # tests lower the work factor through BCRYPT_ROUNDS
    return current_app.config.get("BCRYPT_ROUNDS", 12)

def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or len(plain_password) == 0:
        raise ValueError("Password must be a non-empty string")

    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt(rounds=_rounds()))
    return hashed.decode("utf-8")

def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False

def needs_rehash(password_hash: str) -> bool:
    """True when the stored hash was made with a different work factor ("$2b$12$...")."""
    parts = (password_hash or "").split("$")
    if len(parts) < 4 or not parts[2].isdigit():
        return True
    return int(parts[2]) != _rounds()
