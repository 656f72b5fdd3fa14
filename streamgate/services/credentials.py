from dataclasses import dataclass
from typing import Literal, Union

from streamgate.core.exceptions import AuthError

ATTESTATION_PREFIX = "turnstile|"
SESSION_PREFIX = "jwt|"


@dataclass(frozen=True)
class AttestationCredential:
    secret_response: str
    kind: Literal["turnstile"] = "turnstile"


@dataclass(frozen=True)
class SessionCredential:
    signed_token: str
    kind: Literal["jwt"] = "jwt"


Credential = Union[AttestationCredential, SessionCredential]


def parse_credential(raw: str | None) -> Credential:
    raw = raw or ""
    if raw.startswith(SESSION_PREFIX):
        return SessionCredential(signed_token=raw[len(SESSION_PREFIX) :])
    if raw.startswith(ATTESTATION_PREFIX):
        return AttestationCredential(secret_response=raw[len(ATTESTATION_PREFIX) :])
    raise AuthError(["InvalidTokenType"])
