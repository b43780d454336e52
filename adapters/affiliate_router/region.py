"""
Affiliate routing helpers: reader region detection, single-provider regional
selection, tracking URLs and provider badges shown next to ranked links.
"""
from __future__ import annotations

from typing import Mapping, Optional, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from contracts import AffiliateProvider

DEFAULT_REGION = "EU"
FALLBACK_REGION = "INTL"

EU_COUNTRIES = frozenset({
    "DE", "FR", "IT", "ES", "NL", "BE", "AT", "SE", "DK",
    "FI", "NO", "IE", "PT", "GR", "PL", "CZ", "HU", "RO",
})

# Country headers set by CDNs, checked in this order
_COUNTRY_HEADERS = ("cf-ipcountry", "x-vercel-ip-country")

PREMIUM_RATING = 4.5

# Fallback order when no verified provider serves the reader's own region
REGIONAL_PRIORITY_DEFAULT = ("EU", "US", "UK", "CA", "AU")


def map_country_to_region(country_code: str) -> str:
    code = (country_code or "").strip().upper()
    if code in EU_COUNTRIES:
        return "EU"
    if code == "US":
        return "US"
    if code in ("GB", "UK"):
        return "UK"
    if code == "CA":
        return "CA"
    if code in ("AU", "NZ"):
        return "AU"
    return FALLBACK_REGION


def detect_user_region(
    headers: Optional[Mapping[str, str]] = None,
    user_preference: Optional[str] = None,
    default: str = DEFAULT_REGION,
) -> str:
    """Priority: explicit user preference > CDN country header > default."""
    if user_preference:
        return user_preference

    if headers:
        lowered = {k.lower(): v for k, v in headers.items()}
        for name in _COUNTRY_HEADERS:
            country = lowered.get(name)
            if country:
                return map_country_to_region(country)

    return default


def generate_tracking_url(
    affiliate_url: str,
    entity_id: str,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    ref: str = "synapedia",
) -> str:
    """Adds ref/entity (and optional uid/sid) query parameters; existing ones are kept."""
    tracking = [("ref", ref), ("entity", entity_id)]
    if user_id:
        tracking.append(("uid", user_id))
    if session_id:
        tracking.append(("sid", session_id))

    parts = urlsplit(affiliate_url)
    # Repeated merchant keys survive; only our own keys are replaced
    ours = {key for key, _ in tracking}
    pairs = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in ours
    ]
    return urlunsplit(parts._replace(query=urlencode(pairs + tracking)))


def provider_badges(provider: AffiliateProvider) -> list[str]:
    badges: list[str] = []
    if provider.verified:
        badges.append("Verified")
    if provider.lab_tested:
        badges.append("Lab Tested")
    if provider.quality_rating is not None and provider.quality_rating >= PREMIUM_RATING:
        badges.append("Premium Quality")
    return badges


def get_regional_priority(admin_config: Optional[Sequence[str]] = None) -> list[str]:
    """Admin-configured region order, or the default one when none is set."""
    return list(admin_config) if admin_config else list(REGIONAL_PRIORITY_DEFAULT)


def select_provider_for_region(
    providers: Sequence[AffiliateProvider],
    user_region: str,
    regional_priority: Optional[Sequence[str]] = None,
) -> Optional[AffiliateProvider]:
    """
    Picks a single verified provider: exact region match first, then the
    regions in priority order, then the first verified provider.
    """
    verified = [p for p in providers if p.verified]
    if not verified:
        return None

    for region in [user_region, *get_regional_priority(regional_priority)]:
        for provider in verified:
            if provider.region == region:
                return provider
    return verified[0]
