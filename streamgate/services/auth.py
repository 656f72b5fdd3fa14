from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import Depends, Request

from streamgate.core.exceptions import (AuthError, SessionTokenError,
                                        UpstreamVerificationError)
from streamgate.core.logger import logger
from streamgate.core.metrics import record_auth_result
from streamgate.core.models import settings
from streamgate.services.credentials import (AttestationCredential,
                                             SessionCredential,
                                             parse_credential)
from streamgate.services.turnstile import TurnstileVerifier
from streamgate.utils.http_client import http_client_manager
from streamgate.utils.network import get_client_ip, get_credential
from streamgate.utils.session_token import SessionTokenCodec


@dataclass
class AuthResult:
    success: bool
    error_codes: List[str] = field(default_factory=list)
    new_token: Optional[str] = None


class AuthenticationBroker:
    """
    Single gate in front of the scrape routes.

    Accepts either a `turnstile|<response>` attestation, which is checked
    against the verification service and renewed into a session token, or a
    `jwt|<token>` session token, which is checked locally against its
    signature, expiry and bound client IP.
    """

    def __init__(
        self,
        verifier: TurnstileVerifier,
        codec: SessionTokenCodec,
        enabled: bool = True,
    ):
        self.verifier = verifier
        self.codec = codec
        self.enabled = enabled

    async def authenticate(self, credential: str | None, client_ip: str):
        if not self.enabled:
            return AuthResult(success=True)

        try:
            parsed = parse_credential(credential)
        except AuthError as e:
            logger.log("AUTH", f"Rejected credential from {client_ip}: {e.error_codes}")
            record_auth_result(False, "invalid-type")
            return AuthResult(success=False, error_codes=e.error_codes)

        if isinstance(parsed, SessionCredential):
            return self._check_session(parsed, client_ip)
        if isinstance(parsed, AttestationCredential):
            return await self._check_attestation(parsed, client_ip)

        raise TypeError(f"Unhandled credential kind: {parsed!r}")

    def _check_session(self, credential: SessionCredential, client_ip: str):
        try:
            claims = self.codec.verify(credential.signed_token)
        except SessionTokenError as e:
            logger.log(
                "AUTH", f"Session token {e.reason} for {client_ip}: {e}"
            )
            record_auth_result(False, f"jwt-{e.reason}")
            return AuthResult(success=False, error_codes=["jwt-invalid"])

        if claims["ip"] != client_ip:
            logger.log(
                "AUTH",
                f"Session token bound to {claims['ip']} presented from {client_ip}",
            )
            record_auth_result(False, "jwt-ip-invalid")
            return AuthResult(success=False, error_codes=["jwt-ip-invalid"])

        record_auth_result(True, "jwt")
        return AuthResult(success=True)

    async def _check_attestation(
        self, credential: AttestationCredential, client_ip: str
    ):
        try:
            outcome = await self.verifier.verify(credential.secret_response, client_ip)
        except UpstreamVerificationError as e:
            record_auth_result(False, "turnstile-unavailable")
            return AuthResult(success=False, error_codes=e.error_codes)

        if not outcome.success:
            logger.log(
                "AUTH", f"Turnstile rejected {client_ip}: {outcome.error_codes}"
            )
            record_auth_result(False, "turnstile")
            return AuthResult(success=False, error_codes=outcome.error_codes)

        record_auth_result(True, "turnstile")
        return AuthResult(success=True, new_token=self.codec.issue(client_ip))


auth_broker = AuthenticationBroker(
    verifier=TurnstileVerifier(
        http_client_manager.get_session,
        settings.TURNSTILE_SECRET,
        settings.TURNSTILE_VERIFY_URL,
    ),
    codec=SessionTokenCodec(settings.JWT_SECRET, settings.SESSION_TOKEN_TTL),
    enabled=settings.CAPTCHA_ENABLED,
)


def get_auth_broker():
    return auth_broker


async def require_auth(
    request: Request, broker: AuthenticationBroker = Depends(get_auth_broker)
):
    result = await broker.authenticate(get_credential(request), get_client_ip(request))
    if not result.success:
        raise AuthError(result.error_codes)
    return result
