"""
Acting-user resolution.

The external auth service stores the signed-in user's id in the Flask
session. For local testing the ``cached`` provider also accepts an identity
cached on the client in the ``lekka_user`` cookie, a URL-encoded JSON
object ``{"id": ...}``.
The provider is chosen with the ``IDENTITY_PROVIDER`` config key.
"""
import json
import logging
from urllib.parse import unquote

from flask import current_app, request, session

from errors import Unauthenticated

log = logging.getLogger(__name__)

CACHED_IDENTITY_COOKIE = 'lekka_user'


class SessionIdentity:
    name = 'session'

    def resolve(self):
        uid = session.get('user_id')
        return str(uid) if uid else None


class CachedIdentity(SessionIdentity):
    name = 'cached'

    def resolve(self):
        uid = super().resolve()
        if uid:
            return uid
        raw = request.cookies.get(CACHED_IDENTITY_COOKIE)
        if not raw:
            return None
        try:
            cached = json.loads(unquote(raw))
        except ValueError:
            log.warning('Ignoring unreadable %s cookie', CACHED_IDENTITY_COOKIE)
            return None
        uid = cached.get('id') if isinstance(cached, dict) else None
        return str(uid) if uid else None


PROVIDERS = {p.name: p for p in (SessionIdentity, CachedIdentity)}


def get_identity_provider(name):
    try:
        return PROVIDERS[name]()
    except KeyError:
        raise ValueError(f'Unknown identity provider: {name!r}') from None


def resolve_acting_user():
    """Return the acting user id, or None when nobody is signed in."""
    provider = current_app.extensions['lekka_identity']
    return provider.resolve()


def require_acting_user():
    uid = resolve_acting_user()
    if not uid:
        raise Unauthenticated()
    return uid
