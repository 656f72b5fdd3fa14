from fastapi import Request

from streamgate.core.models import settings

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


def get_client_ip(request: Request):
    """
    The address session tokens are bound to.

    `cf-connecting-ip` is only honoured when TRUST_CF_CONNECTING_IP is set,
    i.e. when the gateway is reachable through Cloudflare alone; otherwise any
    client could pick the IP its token is bound to.
    """
    if settings.TRUST_CF_CONNECTING_IP and "cf-connecting-ip" in request.headers:
        return request.headers["cf-connecting-ip"]
    return request.client.host if request.client else ""


def get_credential(request: Request):
    header_value = request.headers.get(settings.AUTH_HEADER_NAME)
    if header_value:
        return header_value
    return request.query_params.get(settings.AUTH_QUERY_PARAM, "")
