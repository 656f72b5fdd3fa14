from dataclasses import dataclass, field
from typing import List

import aiohttp

from streamgate.core.exceptions import UpstreamVerificationError
from streamgate.core.logger import logger


@dataclass
class VerificationResult:
    success: bool
    error_codes: List[str] = field(default_factory=list)


class TurnstileVerifier:
    def __init__(self, session_getter, secret: str, verify_url: str):
        self.session_getter = session_getter
        self.secret = secret
        self.verify_url = verify_url

    async def verify(self, response_token: str, remote_ip: str):
        form = aiohttp.FormData()
        form.add_field("secret", self.secret or "")
        form.add_field("response", response_token)
        form.add_field("remoteip", remote_ip)

        session = await self.session_getter()
        try:
            async with session.post(self.verify_url, data=form) as response:
                outcome = await response.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            logger.warning(f"Turnstile: verification request failed: {e}")
            raise UpstreamVerificationError(
                f"Turnstile verification unavailable: {e}"
            ) from e

        if not isinstance(outcome, dict):
            raise UpstreamVerificationError(
                f"Turnstile returned an unexpected payload: {outcome!r}"
            )

        return VerificationResult(
            success=bool(outcome.get("success")),
            error_codes=list(outcome.get("error-codes") or []),
        )
