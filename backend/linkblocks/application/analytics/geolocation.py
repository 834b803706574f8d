import ipaddress
import logging
import re
import time
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)

COUNTRY_CODE = re.compile(r"[A-Z]{2}")
DEFAULT_URL_TEMPLATE = "https://ipapi.co/{ip}/country/"
DEFAULT_TIMEOUT = 3.0
MAX_BODY_BYTES = 64
USER_AGENT = "linkblocks/0.1"


def is_routable(ip_address: str) -> bool:
    """False for loopback, private, link-local, reserved and unparsable addresses."""
    try:
        address = ipaddress.ip_address(ip_address.strip())
    except (ValueError, AttributeError):
        return False

    return not (
        address.is_loopback
        or address.is_private
        or address.is_link_local
        or address.is_reserved
        or address.is_multicast
        or address.is_unspecified
    )


def valid_country_code(value) -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        if COUNTRY_CODE.fullmatch(value):
            return value
    return None


class GeoLocator:
    """
    Best-effort country lookup over HTTP. Every failure is "unknown" (None).

    `timeout` is a total deadline for the whole lookup, not a per-read
    limit: a peer that trickles bytes is cut off once it passes.
    """

    def __init__(
        self,
        *,
        url_template: str = DEFAULT_URL_TEMPLATE,
        timeout: float = DEFAULT_TIMEOUT,
        enabled: bool = True,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.url_template = url_template
        self.timeout = timeout
        self.enabled = enabled
        self._client = client
        self.clock = clock

    def country_for_ip(self, ip_address: Optional[str]) -> Optional[str]:
        if not self.enabled or not ip_address or not is_routable(ip_address):
            return None

        url = self.url_template.format(ip=ip_address.strip())
        try:
            body = self._fetch(url)
        except httpx.HTTPError as exc:
            logger.debug("Geolocation lookup failed for %s: %s", ip_address, exc)
            return None

        if body is None:
            return None
        return valid_country_code(body)

    def _fetch(self, url: str) -> Optional[str]:
        deadline = self.clock() + self.timeout
        client = self._client if self._client is not None else httpx.Client()

        try:
            with client.stream(
                "GET",
                url,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
            ) as response:
                if not response.is_success:
                    logger.debug("Geolocation lookup for %s returned %s", url, response.status_code)
                    return None

                body = bytearray()
                for chunk in response.iter_bytes():
                    if self.clock() > deadline:
                        raise httpx.ReadTimeout(
                            f"lookup exceeded {self.timeout}s",
                            request=response.request,
                        )
                    body += chunk
                    if len(body) > MAX_BODY_BYTES:
                        break

                if self.clock() > deadline:
                    raise httpx.ReadTimeout(f"lookup exceeded {self.timeout}s", request=response.request)

                return body[:MAX_BODY_BYTES].decode("utf-8", errors="replace")
        finally:
            if self._client is None:
                client.close()
