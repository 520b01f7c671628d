"""
Utils package for sdb lookup

This package contains utility modules for coordinate transformations,
epoch propagation, rate limiting and retries.
"""

from sdb_lookup.utils.coordinates import (
    degrees_to_hms,
    hms_to_degrees,
    is_coordinate_name,
    parse_coordinate_name,
    separations_and_bearings,
    ellipse_radius,
    propagate_position,
    prefilter_box
)

from sdb_lookup.utils.rate_limiter import (
    RateLimiter,
    retry_with_backoff,
    is_transient,
    cds_rate_limiter,
    irsa_rate_limiter
)

from sdb_lookup.utils.serialization import sanitize_for_json
