"""
identifier.py - Derivation of the sexagesimal sdbid from an epoch 2000.0 position

The sdbid is the only key shared between independent runs, so derivation is a
pure function of (ra, dec) with fixed rounding: seconds of right ascension to
RA_SECONDS_DECIMALS places and arcseconds of declination to DEC_ARCSEC_DECIMALS
places, rounded half up with carry into the minutes and hours/degrees.
"""

import math

from sdb_lookup.config import DEFAULT_SDB_PREFIX
from sdb_lookup.core.models import Position, SDB_EPOCH

RA_SECONDS_DECIMALS = 2
DEC_ARCSEC_DECIMALS = 1

# Smallest step of each part of the identifier, in degrees
RA_PRECISION_DEG = 15.0 / 3600.0 / 10 ** RA_SECONDS_DECIMALS
DEC_PRECISION_DEG = 1.0 / 3600.0 / 10 ** DEC_ARCSEC_DECIMALS


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_ra(ra_deg: float) -> str:
    """Right ascension as HHMMSS.ss (no separators)."""
    scale = 10 ** RA_SECONDS_DECIMALS
    units_per_day = 24 * 3600 * scale
    total = _round_half_up((ra_deg % 360.0) / 15.0 * 3600.0 * scale) % units_per_day

    hours, rest = divmod(total, 3600 * scale)
    minutes, rest = divmod(rest, 60 * scale)
    seconds, fraction = divmod(rest, scale)
    return f"{hours:02d}{minutes:02d}{seconds:02d}.{fraction:0{RA_SECONDS_DECIMALS}d}"


def format_dec(dec_deg: float) -> str:
    """Declination as sDDMMSS.s (no separators, always signed)."""
    if not -90.0 <= dec_deg <= 90.0:
        raise ValueError(f"Declination out of range: {dec_deg}")

    scale = 10 ** DEC_ARCSEC_DECIMALS
    total = _round_half_up(abs(dec_deg) * 3600.0 * scale)
    sign = '-' if dec_deg < 0 and total > 0 else '+'

    degrees, rest = divmod(total, 3600 * scale)
    minutes, rest = divmod(rest, 60 * scale)
    seconds, fraction = divmod(rest, scale)
    return f"{sign}{degrees:02d}{minutes:02d}{seconds:02d}.{fraction:0{DEC_ARCSEC_DECIMALS}d}"


def derive_sdbid(ra_deg: float, dec_deg: float, prefix: str = DEFAULT_SDB_PREFIX) -> str:
    """sdbid for an epoch 2000.0 position, e.g. sdb-v1-183656.34+384701.3."""
    return f"{prefix}{format_ra(ra_deg)}{format_dec(dec_deg)}"


class IdentifierDeriver:
    """Turns epoch 2000.0 positions into sdbids with a fixed version prefix."""

    def __init__(self, prefix: str = DEFAULT_SDB_PREFIX):
        self.prefix = prefix

    def derive(self, position: Position) -> str:
        if position.epoch != SDB_EPOCH:
            raise ValueError(f"sdbids are derived from epoch {SDB_EPOCH} positions, got {position.epoch}")
        return derive_sdbid(position.ra_deg, position.dec_deg, self.prefix)

