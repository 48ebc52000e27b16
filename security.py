import logging

import bcrypt

from errors import NotFound
from storage import ForumStorage

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds)).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        logger.warning("stored password hash is malformed")
        return False


def authenticate(storage: ForumStorage, username: str, password: str) -> bool:
    try:
        user = storage.find_user(username)
    except NotFound:
        return False
    return verify_password(password, user.password)
