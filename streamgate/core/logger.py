import sys

from loguru import logger

from streamgate.core.log_levels import CUSTOM_LOG_LEVELS, STANDARD_LOG_LEVELS
from streamgate.core.models import settings

LOG_FORMAT = (
    "<dim>{time:YYYY-MM-DD HH:mm:ss.SSS}</dim> "
    "<level>{level.icon} {level: <7}</level> "
    "<cyan>{name}</cyan> <level>{message}</level>"
)


def setupLogger(level: str, sink=sys.stderr):
    for name, options in {**STANDARD_LOG_LEVELS, **CUSTOM_LOG_LEVELS}.items():
        # built-in levels keep their severity, gateway levels bring their own
        severity = {"no": options["no"]} if "no" in options else {}
        logger.level(
            name, icon=options["icon"], color=options["loguru_color"], **severity
        )

    # one sink; enqueue keeps relay tasks from blocking on stderr writes
    logger.configure(
        handlers=[
            {
                "sink": sink,
                "level": level,
                "format": LOG_FORMAT,
                "enqueue": True,
                "backtrace": False,
                "diagnose": False,
            }
        ]
    )


setupLogger(settings.LOG_LEVEL)


def _mask(secret: str | None):
    if not secret:
        return "unset"
    return f"{secret[:3]}***"


def log_startup_info(settings):
    logger.log(
        "GATEWAY",
        f"Server started on http://{settings.FASTAPI_HOST}:{settings.FASTAPI_PORT} - {settings.FASTAPI_WORKERS} workers",
    )
    logger.log(
        "GATEWAY",
        f"Captcha: {bool(settings.CAPTCHA_ENABLED)} - Turnstile Secret: {_mask(settings.TURNSTILE_SECRET)} - Session TTL: {settings.SESSION_TOKEN_TTL}s",
    )
    if settings.CAPTCHA_ENABLED and not settings.TURNSTILE_SECRET:
        logger.warning(
            "CAPTCHA_ENABLED is set but TURNSTILE_SECRET is empty, every attestation will be rejected"
        )

    proxied = ", ".join(settings.PROXIED_HOSTNAMES) or "none"
    logger.log(
        "GATEWAY",
        f"Proxy: {settings.PROXY_URL or 'disabled'} - Proxied Hostnames: {proxied}",
    )
    logger.log(
        "GATEWAY",
        f"CORS Origins: {', '.join(settings.CORS_ALLOWED_ORIGINS)} - Provider Fetch Timeout: {settings.PROVIDER_FETCH_TIMEOUT}s",
    )
