import uvicorn

from streamgate.core.logger import log_startup_info, logger
from streamgate.core.models import settings


def main():
    log_startup_info(settings)

    try:
        # import string so uvicorn can supervise FASTAPI_WORKERS processes
        uvicorn.run(
            "streamgate.api.app:app",
            host=settings.FASTAPI_HOST,
            port=settings.FASTAPI_PORT,
            workers=settings.FASTAPI_WORKERS,
            proxy_headers=True,
            forwarded_allow_ips=settings.FORWARDED_ALLOW_IPS,
            log_config=None,
            access_log=False,
        )
    except KeyboardInterrupt:
        logger.log("GATEWAY", "Stopped by user")
    finally:
        logger.log("GATEWAY", "Gateway shut down")


if __name__ == "__main__":
    main()
