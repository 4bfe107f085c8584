import time
from typing import Optional

from itsdangerous import BadData, URLSafeSerializer

from config import get_settings


def _serializer() -> URLSafeSerializer:
    settings = get_settings()
    return URLSafeSerializer(settings.token_secret, salt="auth-token")


def issue_token(username: str, *, now: Optional[float] = None) -> str:
    """Sign a session token for ``username`` valid for the configured TTL."""
    settings = get_settings()
    issued_at = int(now if now is not None else time.time())
    expiry = issued_at + settings.token_ttl_hours * 3600

    token_data = {"sub": username, "iat": issued_at, "exp": expiry}

    return _serializer().dumps(token_data)


def verify_token(token: Optional[str], *, now: Optional[float] = None) -> Optional[str]:
    """Return the token subject, or None when the token is unusable.

    A token is unusable when it is missing, malformed, signed with another
    key, or past its expiry. Callers treat None as anonymous.
    """
    if not token:
        return None
    try:
        data = _serializer().loads(token)
    except BadData:
        return None

    if not isinstance(data, dict):
        return None
    subject = data.get("sub")
    expiry = data.get("exp")
    if not isinstance(subject, str) or not subject:
        return None
    if not isinstance(expiry, int):
        return None

    current_time = int(now if now is not None else time.time())
    if current_time >= expiry:
        return None

    return subject
