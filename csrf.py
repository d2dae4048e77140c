from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings
from services import get_current_user_id

TOKEN_MAX_AGE_SECS = 2 * 3600


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.csrf_secret, salt="finance-csrf-token")


def generate_csrf_token(user_id: Optional[int] = None) -> str:
    return _serializer().dumps({"u": user_id or get_current_user_id()})


def validate_csrf_token(
    token: Optional[str],
    user_id: Optional[int] = None,
    max_age_secs: int = TOKEN_MAX_AGE_SECS,
) -> bool:
    if not token:
        return False
    try:
        data = _serializer().loads(token, max_age=max_age_secs)
    except BadSignature:
        # SignatureExpired is a BadSignature too
        return False
    if not isinstance(data, dict):
        return False
    return data.get("u") == (user_id or get_current_user_id())
