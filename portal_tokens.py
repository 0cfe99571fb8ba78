"""Signed invite links for the parent portal."""
from datetime import datetime, timedelta

from jose import JWTError, jwt

ALGORITHM = 'HS256'
TOKEN_PURPOSE = 'portal_invite'


class InvalidPortalToken(Exception):
    pass


def create_portal_token(guardian, secret_key, ttl_hours=72, now=None):
    now = now or datetime.utcnow()
    claims = {
        'sub': str(guardian.id),
        'org': guardian.organization_id,
        'family': guardian.family_id,
        'purpose': TOKEN_PURPOSE,
        'iat': now,
        'exp': now + timedelta(hours=ttl_hours),
    }
    return jwt.encode(claims, secret_key, algorithm=ALGORITHM)


def decode_portal_token(token, secret_key):
    """Return the token claims or raise InvalidPortalToken."""
    try:
        claims = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except JWTError as e:
        raise InvalidPortalToken(str(e)) from e
    if claims.get('purpose') != TOKEN_PURPOSE or not claims.get('sub'):
        raise InvalidPortalToken('Token is not a portal invite')
    return claims


def issued_before(claims, moment):
    """True when the token was issued before moment (naive UTC), compared to the second."""
    if moment is None:
        return False
    issued_at = datetime(1970, 1, 1) + timedelta(seconds=int(claims.get('iat', 0)))
    return issued_at < moment.replace(microsecond=0)
