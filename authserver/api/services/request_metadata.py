"""
Request metadata captured when an authorization is granted.

Extracts:
- IP address (forwarding headers first, then the socket peer)
- User-Agent details (browser, device type, OS) via the user-agents parser
- Geolocation (country, city) via GeoLocationService
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from starlette.requests import HTTPConnection
from user_agents import parse as parse_user_agent

from .geolocation import GeoLocationService

logger = logging.getLogger(__name__)

UNKNOWN_USER_AGENT = "Unknown"

# Checked in order; the first non-empty value wins
IP_HEADER_NAMES = (
    "X-Forwarded-For",
    "X-Real-IP",
    "Proxy-Client-IP",
    "WL-Proxy-Client-IP",
    "HTTP_X_FORWARDED_FOR",
    "HTTP_X_FORWARDED",
    "HTTP_X_CLUSTER_CLIENT_IP",
    "HTTP_CLIENT_IP",
    "HTTP_FORWARDED_FOR",
    "HTTP_FORWARDED",
    "HTTP_VIA",
    "REMOTE_ADDR",
)


@dataclass(frozen=True)
class RequestMetadata:
    """Immutable snapshot of where an authorization was granted from."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    browser: Optional[str] = None
    device_type: Optional[str] = None
    os: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None

    def as_record_fields(self) -> dict:
        """Column values for an AuthorizationHistory row."""
        fields = asdict(self)
        if fields["user_agent"]:
            fields["user_agent"] = fields["user_agent"][:512]
        return fields


EMPTY_METADATA = RequestMetadata()


def extract_ip_address(request: HTTPConnection) -> Optional[str]:
    for header in IP_HEADER_NAMES:
        value = request.headers.get(header)
        if value and value.strip() and value.strip().lower() != "unknown":
            # X-Forwarded-For is "client, proxy1, proxy2"; keep the client
            ip = value.split(",")[0].strip()
            logger.debug(f"IP address extracted from header {header}: {ip}")
            return ip

    remote = request.client.host if request.client else None
    logger.debug(f"IP address extracted from remote address: {remote}")
    return remote


def extract_user_agent(request: HTTPConnection) -> str:
    value = request.headers.get("user-agent")
    return value if value and value.strip() else UNKNOWN_USER_AGENT


def describe_device(user_agent) -> str:
    if user_agent.is_bot:
        return "Bot"
    if user_agent.is_tablet:
        return "Tablet"
    if user_agent.is_mobile:
        return "Mobile"
    if user_agent.is_pc:
        return "Computer"
    return "Unknown"


class RequestMetadataExtractor:
    """Builds RequestMetadata from an inbound HTTP request."""

    def __init__(self, geolocation: Optional[GeoLocationService] = None):
        self.geolocation = geolocation if geolocation is not None else GeoLocationService.from_settings()

    def extract(self, request: HTTPConnection) -> RequestMetadata:
        ip_address = extract_ip_address(request)
        user_agent = extract_user_agent(request)

        browser = device_type = os_name = None
        if user_agent != UNKNOWN_USER_AGENT:
            parsed = parse_user_agent(user_agent)
            browser = parsed.browser.family
            device_type = describe_device(parsed)
            os_name = f"{parsed.os.family} {parsed.os.version_string}".strip()

        location = self.geolocation.get_location(ip_address)

        logger.debug(
            f"Extracted request metadata: IP={ip_address}, Browser={browser}, "
            f"Device={device_type}, OS={os_name}, Country={location.country}, City={location.city}"
        )

        return RequestMetadata(
            ip_address=ip_address,
            user_agent=user_agent,
            browser=browser,
            device_type=device_type,
            os=os_name,
            country=location.country,
            city=location.city,
        )
