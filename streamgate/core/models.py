import secrets
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    FASTAPI_HOST: Optional[str] = "0.0.0.0"
    FASTAPI_PORT: Optional[int] = 8000
    FASTAPI_WORKERS: Optional[int] = 1
    LOG_LEVEL: Optional[str] = "DEBUG"
    CAPTCHA_ENABLED: Optional[bool] = False
    TURNSTILE_SECRET: Optional[str] = ""
    TURNSTILE_VERIFY_URL: Optional[str] = (
        "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    )
    JWT_SECRET: Optional[str] = secrets.token_urlsafe(32)
    SESSION_TOKEN_TTL: Optional[int] = 600  # 10 minutes
    AUTH_HEADER_NAME: Optional[str] = "cf-turnstile-token"
    AUTH_QUERY_PARAM: Optional[str] = "token"
    CORS_ALLOWED_ORIGINS: List[str] = ["*"]
    TRUST_CF_CONNECTING_IP: Optional[bool] = False
    FORWARDED_ALLOW_IPS: Optional[str] = "127.0.0.1"
    PROXY_URL: Optional[str] = None
    PROXIED_HOSTNAMES: List[str] = ["showbox.shegu.net", "mbpapi.shegu.net"]
    HTTP_CLIENT_TIMEOUT_TOTAL: Optional[int] = 30
    PROVIDER_FETCH_TIMEOUT: Optional[int] = 15
    PROVIDER_CONCURRENCY: Optional[int] = 4

    @field_validator("PROXY_URL")
    def remove_trailing_slash(cls, v):
        if v and v.endswith("/"):
            return v[:-1]
        return v or None

    @field_validator("PROXIED_HOSTNAMES")
    def proxied_hostnames_normalization(cls, v):
        return [hostname.strip().lower() for hostname in v if hostname.strip()]

    @field_validator("LOG_LEVEL")
    def log_level_normalization(cls, v):
        return (v or "DEBUG").upper()


settings = AppSettings()
