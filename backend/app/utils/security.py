import os
import secrets

import bcrypt


def _rounds() -> int:
    return int(os.getenv("PASSWORD_SALT_ROUNDS", "12"))


def hash_password(plain: str) -> str:
    salt = bcrypt.gensalt(rounds=_rounds())
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode()


def check_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def new_api_token() -> str:
    return secrets.token_urlsafe(32)
