"""
Security Module

Password hashing (passlib/bcrypt), JWT access tokens (python-jose) and the
shared-secret check used by the scheduler and workflow executor, and the
API keys agents authenticate with.

Access tokens carry the tenant_id they were minted for; deps.get_current_user
refuses a token presented to any other tenant.
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Tuple
import hashlib
import hmac
import secrets
from jose import JWTError, jwt
from passlib.context import CryptContext
from bizos.config import get_settings

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt. Keep out of hot paths."""
    return pwd_context.hash(password)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Expected claims in ``data``: ``sub`` (user id), ``tenant_id``, ``role``.
    ``exp`` and ``iat`` are added here.
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "exp": expire,
        "iat": datetime.utcnow()
    })

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a JWT. Returns None if invalid, tampered or expired."""
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None


def verify_scheduler_secret(provided: Optional[str], expected: Optional[str] = None) -> bool:
    """
    Constant-time check of the x-scheduler-secret header.

    An unset secret on the server side never verifies.
    """
    expected = settings.SCHEDULER_SECRET if expected is None else expected
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


# Agent API keys look like "bz_agent_" + 32 hex chars. Lookup is by SHA-256
# digest, so unlike passwords they are not salted.
AGENT_KEY_PREFIX = "bz_agent_"
AGENT_KEY_LENGTH = len(AGENT_KEY_PREFIX) + 32


def hash_agent_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode()).hexdigest()


def generate_agent_api_key() -> Tuple[str, str, str]:
    """
    Mint a new agent key.

    Returns (plaintext, sha256 hex digest, display prefix). The plaintext
    is shown once and never stored.
    """
    raw = secrets.token_hex(16)
    api_key = f"{AGENT_KEY_PREFIX}{raw}"
    return api_key, hash_agent_api_key(api_key), f"{AGENT_KEY_PREFIX}{raw[:8]}..."


def is_agent_key_format(api_key: Optional[str]) -> bool:
    return bool(api_key) and api_key.startswith(AGENT_KEY_PREFIX) and len(api_key) == AGENT_KEY_LENGTH
