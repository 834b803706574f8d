from flask import request


def client_ip():
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr


def click_metadata(extra=None):
    """Click metadata gathered from the current request."""
    metadata = {
        "referrer": request.referrer,
        "user_agent": request.headers.get("User-Agent"),
        "ip_address": client_ip(),
        "path": request.path,
    }
    if extra:
        metadata.update({k: v for k, v in extra.items() if v is not None})
    return metadata
