from .region import (
    REGIONAL_PRIORITY_DEFAULT,
    detect_user_region,
    generate_tracking_url,
    get_regional_priority,
    map_country_to_region,
    provider_badges,
    select_provider_for_region,
)
from .scoring_router import ScoringAffiliateRouter, compute_score, get_best_affiliate_links

__all__ = [
    "ScoringAffiliateRouter",
    "compute_score",
    "get_best_affiliate_links",
    "REGIONAL_PRIORITY_DEFAULT",
    "detect_user_region",
    "generate_tracking_url",
    "get_regional_priority",
    "map_country_to_region",
    "provider_badges",
    "select_provider_for_region",
]
