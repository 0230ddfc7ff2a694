"""
Vendor classification for source URLs.

The set of vendors is closed. Anything not listed in VENDOR_PATTERNS is
Vendor.OTHER, so adding a vendor means adding an enum member and a row.
"""

from enum import Enum
from urllib.parse import urlparse


class Vendor(str, Enum):
    """Known online pharmacies, plus a catch-all."""

    ONE_MG = "1mg"
    PHARMEASY = "PharmEasy"
    APOLLO = "Apollo"
    NETMEDS = "Netmeds"
    OTHER = "Other"


# Checked in order; first match wins.
VENDOR_PATTERNS: tuple[tuple[Vendor, tuple[str, ...]], ...] = (
    (Vendor.ONE_MG, ("1mg",)),
    (Vendor.PHARMEASY, ("pharmeasy",)),
    (Vendor.APOLLO, ("apollopharmacy", "apollo247", "apollo")),
    (Vendor.NETMEDS, ("netmeds",)),
)


def _match(text: str) -> Vendor | None:
    for vendor, patterns in VENDOR_PATTERNS:
        if any(p in text for p in patterns):
            return vendor
    return None


def classify_vendor(url: str | None) -> Vendor:
    """
    Map a source URL to a Vendor.

    The hostname is tried first so a vendor name in a path or query string
    of some other site does not win over the site's own host.
    """
    if not url:
        return Vendor.OTHER

    lowered = url.strip().lower()
    host = urlparse(lowered if "//" in lowered else f"//{lowered}").hostname or ""

    return _match(host) or _match(lowered) or Vendor.OTHER
