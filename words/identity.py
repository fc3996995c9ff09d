# words/identity.py
from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings
from django.core import signing
from rest_framework import authentication, exceptions


@dataclass(frozen=True)
class Identity:
    """Verified requester, as vouched for by a signed token. Never loaded from the DB."""
    id: str
    email: str = ""
    name: str = ""

    @property
    def is_authenticated(self) -> bool:
        return True


def issue_token(user) -> str:
    """
    Sign the claims the word views rely on.
    This is the signing primitive a login flow would call before setting the cookie.
    """
    payload = {
        "sub": str(user.pk),
        "email": getattr(user, "email", "") or "",
        "name": (user.get_full_name() or "").strip(),
    }
    return signing.dumps(payload, salt=settings.WORDS_TOKEN_SALT)


def identify(token: str) -> Identity | None:
    """Verified identity for a token, or None if it is forged, expired or malformed."""
    try:
        payload = signing.loads(token, salt=settings.WORDS_TOKEN_SALT, max_age=settings.WORDS_TOKEN_MAX_AGE)
    except signing.BadSignature:
        return None
    if not isinstance(payload, dict) or not payload.get("sub"):
        return None
    return Identity(id=str(payload["sub"]), email=payload.get("email") or "", name=payload.get("name") or "")


class SignedCookieAuthentication(authentication.BaseAuthentication):
    """
    Reads the signed token from the WORDS_TOKEN_COOKIE cookie.
    No cookie -> anonymous (permission check answers 401); bad token -> 401.
    """
    def authenticate(self, request):
        token = request.COOKIES.get(settings.WORDS_TOKEN_COOKIE)
        if not token:
            return None
        identity = identify(token)
        if identity is None:
            raise exceptions.AuthenticationFailed("Invalid or expired token.")
        return identity, token

    def authenticate_header(self, request):
        return f'Cookie name="{settings.WORDS_TOKEN_COOKIE}"'
