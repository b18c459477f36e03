from passlib.context import CryptContext

from app.config import get_settings

# pbkdf2_sha256: primary (no native deps)
# bcrypt: accepted for hashes generated elsewhere
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated=["bcrypt"])


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def check_dashboard_password(password: str) -> bool:
    """Compare against DASHBOARD_PASSWORD_HASH; always False when no hash is configured."""
    password_hash = get_settings().DASHBOARD_PASSWORD_HASH
    if not password_hash or not password:
        return False
    return verify_password(password, password_hash)
