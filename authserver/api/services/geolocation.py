"""
IP geolocation backed by a MaxMind GeoLite2 city database.

Lookup is best effort: a disabled service, a missing database, a private
address or any lookup error all yield an empty LocationInfo.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import geoip2.database
import geoip2.errors
from maxminddb.errors import InvalidDatabaseError

from authserver.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocationInfo:
    country: Optional[str] = None
    city: Optional[str] = None


EMPTY_LOCATION = LocationInfo()


def is_private_or_local_ip(ip: str) -> bool:
    """True for loopback, link-local, private and unspecified addresses."""
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        logger.debug(f"Failed to parse IP address: {ip}")
        return False
    return (
        address.is_loopback
        or address.is_link_local
        or address.is_private
        or address.is_unspecified
    )


class GeoLocationService:
    """Country / city lookup for the IP an authorization was granted from."""

    def __init__(self, reader: Optional[geoip2.database.Reader] = None):
        self.reader = reader

    @classmethod
    def from_settings(cls) -> "GeoLocationService":
        if not settings.geoip_enabled:
            logger.info("GeoIP lookup is disabled by configuration.")
            return cls()

        path = Path(settings.geoip_database_path or "")
        if not path.is_file():
            logger.warning(
                f"GeoIP database not found at: {path}. Geolocation will be unavailable."
            )
            return cls()

        try:
            reader = geoip2.database.Reader(str(path))
        except (OSError, InvalidDatabaseError) as e:
            logger.error(f"Failed to load GeoIP database from {path}: {e}")
            return cls()

        logger.info(f"GeoIP database loaded from: {path}")
        return cls(reader)

    def get_location(self, ip: Optional[str]) -> LocationInfo:
        if self.reader is None:
            return EMPTY_LOCATION

        if not ip or not ip.strip():
            return EMPTY_LOCATION

        if is_private_or_local_ip(ip):
            logger.debug(f"Private or local IP address {ip}, skipping geolocation")
            return EMPTY_LOCATION

        try:
            response = self.reader.city(ip)
        except (geoip2.errors.GeoIP2Error, ValueError) as e:
            logger.debug(f"Failed to look up geolocation for IP {ip}: {e}")
            return EMPTY_LOCATION

        location = LocationInfo(country=response.country.name, city=response.city.name)
        logger.debug(f"Geolocation for IP {ip}: {location}")
        return location

    def close(self) -> None:
        if self.reader is not None:
            self.reader.close()
            self.reader = None
