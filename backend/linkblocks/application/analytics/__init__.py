from .geolocation import GeoLocator, is_routable, valid_country_code
from .recorder import AnalyticsRecorder

__all__ = ["GeoLocator", "AnalyticsRecorder", "is_routable", "valid_country_code"]
