import time

import jwt

from streamgate.core.exceptions import (ExpiredSessionToken, ForgedSessionToken,
                                        MalformedSessionToken)

ALGORITHM = "HS256"


class SessionTokenCodec:
    def __init__(self, secret: str, ttl: int):
        self.secret = secret
        self.ttl = ttl

    def sign(self, claims: dict, now: int = None):
        issued_at = int(now if now is not None else time.time())
        payload = {"iat": issued_at, "exp": issued_at + self.ttl, **claims}
        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)

    def issue(self, ip: str, now: int = None):
        return self.sign({"ip": ip}, now=now)

    def verify(self, token: str | None):
        """
        Decode a session token and return its claims.

        Raises MalformedSessionToken, ForgedSessionToken or ExpiredSessionToken
        so callers can tell a stale token from a tampered one.
        """
        if not token:
            raise MalformedSessionToken("empty session token")

        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "ip"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise ExpiredSessionToken(str(e)) from e
        except jwt.InvalidSignatureError as e:
            raise ForgedSessionToken(str(e)) from e
        except jwt.InvalidTokenError as e:
            raise MalformedSessionToken(str(e)) from e

        if not isinstance(claims.get("ip"), str):
            raise MalformedSessionToken("ip claim must be a string")

        return claims
