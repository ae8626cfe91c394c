from dataclasses import dataclass
from typing import Optional, Protocol

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings

SESSION_COOKIE = "pl_session"


@dataclass(frozen=True)
class User:
    id: str
    email: Optional[str] = None


class IdentityProvider(Protocol):
    def current_user(self) -> Optional[User]:
        ...


class StaticIdentity:
    def __init__(self, user: Optional[User] = None) -> None:
        self.user = user

    def current_user(self) -> Optional[User]:
        return self.user

    def sign_in(self, user: User) -> None:
        self.user = user

    def sign_out(self) -> None:
        self.user = None


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.secret_key, salt="pl-session")


class SignedCookieIdentity:
    """Resolves the signed-in user from a session cookie.

    Sign-in itself happens in the external identity provider; this only
    carries its result between requests. A missing, tampered or expired
    cookie means local-only mode.
    """

    def __init__(self, cookie_value: Optional[str], max_age_days: int = 30) -> None:
        self.cookie_value = cookie_value
        self.max_age_secs = max_age_days * 86400

    @staticmethod
    def sign_in(user: User) -> str:
        return _serializer().dumps({"id": user.id, "email": user.email})

    @staticmethod
    def sign_out() -> str:
        return ""

    def current_user(self) -> Optional[User]:
        if not self.cookie_value:
            return None
        try:
            data = _serializer().loads(self.cookie_value, max_age=self.max_age_secs)
        except BadSignature:
            return None
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return User(id=str(data["id"]), email=data.get("email"))
