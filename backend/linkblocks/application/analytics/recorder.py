import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Mapping, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from linkblocks.application.analytics.geolocation import GeoLocator, valid_country_code
from linkblocks.domain.exceptions import TransientError
from linkblocks.extensions import db
from linkblocks.models import Click
from linkblocks.utils.transaction import transactional

logger = logging.getLogger(__name__)

REFERRER_MAX = 500
IP_MAX = 45

# Accept both snake_case and the camelCase keys browsers' beacons send
FIELD_ALIASES = {
    "referrer": ("referrer", "referer"),
    "user_agent": ("user_agent", "userAgent"),
    "ip_address": ("ip_address", "ipAddress"),
    "country": ("country",),
}


def _pick(metadata: Mapping[str, Any], field: str) -> Optional[str]:
    for key in FIELD_ALIASES[field]:
        value = metadata.get(key)
        if value:
            return str(value)
    return None


class AnalyticsRecorder:
    """
    Fire-and-forget click logging.

    `track_click` never raises and, unless built with sync=True, never waits
    on geolocation or the database: the work runs on a small thread pool
    inside its own application context.
    """

    def __init__(self, geolocator: GeoLocator, *, sync: bool = False, max_workers: int = 4):
        self.geolocator = geolocator
        self.sync = sync
        self._executor = None
        if not sync:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="linkblocks-analytics",
            )

    def track_click(self, block_id: str, metadata: Optional[Mapping[str, Any]] = None) -> Optional[Future]:
        try:
            payload = dict(metadata or {})
            if self.sync:
                self._record_safely(block_id, payload)
                return None

            app = current_app._get_current_object()
            return self._executor.submit(self._record_in_context, app, block_id, payload)
        except Exception:
            logger.warning("Could not schedule click for block %s", block_id, exc_info=True)
            return None

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)

    def _record_in_context(self, app, block_id: str, metadata: Dict[str, Any]) -> None:
        with app.app_context():
            self._record_safely(block_id, metadata)

    def _record_safely(self, block_id: str, metadata: Dict[str, Any]) -> None:
        try:
            self.record(block_id, metadata)
        except TransientError as exc:
            logger.warning("Dropped click for block %s: %s", block_id, exc.message)
        except Exception:
            logger.warning("Dropped click for block %s", block_id, exc_info=True)

    def record(self, block_id: str, metadata: Dict[str, Any]) -> Click:
        ip_address = _pick(metadata, "ip_address")
        country = valid_country_code(_pick(metadata, "country"))
        if country is None and ip_address:
            country = self._lookup_country(ip_address)

        referrer = _pick(metadata, "referrer")

        click = Click()
        click.block_id = block_id
        click.referrer = referrer[:REFERRER_MAX] if referrer else None
        click.user_agent = _pick(metadata, "user_agent")
        click.ip_address = ip_address[:IP_MAX] if ip_address else None
        click.country = country
        click.meta = {key: value for key, value in metadata.items() if _is_json_scalar(value)}

        try:
            with transactional():
                db.session.add(click)
        except SQLAlchemyError as exc:
            raise TransientError(f"Click write failed: {exc.__class__.__name__}") from exc

        return click

    def _lookup_country(self, ip_address: str) -> Optional[str]:
        try:
            return self.geolocator.country_for_ip(ip_address)
        except Exception:
            logger.debug("Geolocation raised for %s", ip_address, exc_info=True)
            return None


def _is_json_scalar(value) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))
