"""
coordinates.py - Coordinate utilities for the sdb lookup pipeline

This module provides conversions between coordinate representations, angular
separations, linear proper-motion propagation between epochs, and helpers for
coordinate-shaped target names such as "J183656.34+384701.3".
"""

import re
import numpy as np
from typing import Tuple, List, Optional, Union
from astropy.coordinates import SkyCoord
import astropy.units as u

# milli-arcseconds to radians
MAS2RAD = np.pi / 180 / 3600 / 1000

# J<hhmmss[.ss]><sign><ddmmss[.s]>, 2MASS style (implied decimal point) also accepted
COORDINATE_NAME_PATTERN = re.compile(r'^J(\d{6}(?:\.\d+|\d*))([+-])(\d{6}(?:\.\d+|\d*))$')


def degrees_to_hms(ra: float, dec: float, ra_precision: int = 2, dec_precision: int = 1) -> Tuple[str, str]:
    """
    Convert decimal degrees to HMS/DMS representation.

    Args:
        ra: Right ascension in decimal degrees.
        dec: Declination in decimal degrees.
        ra_precision: Decimal places on the seconds of right ascension.
        dec_precision: Decimal places on the arcseconds of declination.

    Returns:
        Tuple of (RA in HH:MM:SS format, Dec in DD:MM:SS format)
    """
    coord = SkyCoord(ra=ra*u.degree, dec=dec*u.degree, frame='icrs')
    ra_hms = coord.ra.to_string(unit=u.hourangle, sep=':', precision=ra_precision, pad=True)
    dec_dms = coord.dec.to_string(unit=u.degree, sep=':', precision=dec_precision, pad=True, alwayssign=True)
    return ra_hms, dec_dms


def hms_to_degrees(ra_hms: str, dec_dms: str) -> Tuple[float, float]:
    """
    Convert HMS/DMS representation to decimal degrees.

    Args:
        ra_hms: Right ascension in HH:MM:SS format.
        dec_dms: Declination in DD:MM:SS format.

    Returns:
        Tuple of (RA in decimal degrees, Dec in decimal degrees)
    """
    coord = SkyCoord(ra_hms, dec_dms, unit=(u.hourangle, u.deg), frame='icrs')
    return coord.ra.degree, coord.dec.degree


def is_coordinate_name(name: Optional[str]) -> bool:
    """Return True if the name is itself a coordinate, e.g. J183656.34+384701.3."""
    if not name:
        return False
    return COORDINATE_NAME_PATTERN.match(name.strip()) is not None


def parse_coordinate_name(name: str) -> Tuple[float, float]:
    """
    Extract the position encoded in a coordinate-shaped name.

    The first six digits of each part are hhmmss / ddmmss, any further digits are
    fractions of a second, so "J18365633+3847012" and "J183656.33+384701.2" are
    the same position.

    Args:
        name: Coordinate-shaped name.

    Returns:
        Tuple of (RA in decimal degrees, Dec in decimal degrees)

    Raises:
        ValueError: If the name is not coordinate-shaped.
    """
    match = COORDINATE_NAME_PATTERN.match(name.strip())
    if match is None:
        raise ValueError(f"Not a coordinate-shaped name: {name}")

    ra_digits = match.group(1).replace('.', '')
    sign = match.group(2)
    dec_digits = match.group(3).replace('.', '')

    ra_hms = f"{ra_digits[0:2]}:{ra_digits[2:4]}:{ra_digits[4:6]}.{ra_digits[6:] or '0'}"
    dec_dms = f"{sign}{dec_digits[0:2]}:{dec_digits[2:4]}:{dec_digits[4:6]}.{dec_digits[6:] or '0'}"
    return hms_to_degrees(ra_hms, dec_dms)


def separations_and_bearings(ra: float, dec: float,
                             ras: Union[List[float], np.ndarray],
                             decs: Union[List[float], np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Separation (arcsec) and position angle (deg, east of north) from one point to many.

    Args:
        ra: Right ascension of the centre in decimal degrees.
        dec: Declination of the centre in decimal degrees.
        ras: Right ascensions of the other points.
        decs: Declinations of the other points.

    Returns:
        Tuple of (separations in arcsec, bearings in degrees)
    """
    center = SkyCoord(ra=ra*u.deg, dec=dec*u.deg, frame='icrs')
    others = SkyCoord(ra=np.asarray(ras, dtype=float)*u.deg,
                      dec=np.asarray(decs, dtype=float)*u.deg, frame='icrs')
    separations = center.separation(others).arcsec
    bearings = center.position_angle(others).degree
    return np.atleast_1d(separations), np.atleast_1d(bearings)


def ellipse_radius(semi_major: Union[float, np.ndarray], semi_minor: Union[float, np.ndarray],
                   position_angle_deg: Union[float, np.ndarray],
                   bearing_deg: Union[float, np.ndarray]) -> np.ndarray:
    """
    Radius of an ellipse along a given bearing.

    Args:
        semi_major: Semi-major axis (any angular unit).
        semi_minor: Semi-minor axis (same unit).
        position_angle_deg: Orientation of the major axis, degrees east of north.
        bearing_deg: Direction of interest, degrees east of north.

    Returns:
        Radius in the unit of the axes.
    """
    a = np.asarray(semi_major, dtype=float)
    b = np.asarray(semi_minor, dtype=float)
    delta = np.radians(np.asarray(bearing_deg, dtype=float) - np.asarray(position_angle_deg, dtype=float))
    denominator = np.sqrt((b * np.cos(delta)) ** 2 + (a * np.sin(delta)) ** 2)
    with np.errstate(divide='ignore', invalid='ignore'):
        radius = np.where(denominator > 0, a * b / denominator, 0.0)
    return radius


def propagate_position(ra: float, dec: float,
                       pmra_mas_yr: Optional[float], pmde_mas_yr: Optional[float],
                       from_epoch: float, to_epoch: float) -> Tuple[float, float]:
    """
    Move a position along its proper motion assuming constant linear velocity.

    The bearing is converted to a unit vector which is then displaced along the
    directions of increasing right ascension and declination (Hipparcos Vol. 1,
    section 1.2.8). ``pmra_mas_yr`` already includes the cos(dec) factor, as
    given by Hipparcos, Tycho-2, UCAC4 and PPMXL.

    Args:
        ra: Right ascension in decimal degrees at from_epoch.
        dec: Declination in decimal degrees at from_epoch.
        pmra_mas_yr: Proper motion in RA*cos(dec), mas/yr. None or NaN means zero.
        pmde_mas_yr: Proper motion in Dec, mas/yr. None or NaN means zero.
        from_epoch: Epoch of the input position (decimal years).
        to_epoch: Epoch of the output position (decimal years).

    Returns:
        Tuple of (RA, Dec) in decimal degrees at to_epoch.
    """
    pmra = 0.0 if pmra_mas_yr is None or np.isnan(pmra_mas_yr) else float(pmra_mas_yr)
    pmde = 0.0 if pmde_mas_yr is None or np.isnan(pmde_mas_yr) else float(pmde_mas_yr)
    delta_years = to_epoch - from_epoch

    if delta_years == 0 or (pmra == 0 and pmde == 0):
        return ra, dec

    ra0 = np.radians(ra)
    dec0 = np.radians(dec)

    r_unit = np.array([np.cos(dec0) * np.cos(ra0), np.cos(dec0) * np.sin(ra0), np.sin(dec0)])
    p_unit = np.array([-np.sin(ra0), np.cos(ra0), 0.0])
    q_unit = np.array([-np.sin(dec0) * np.cos(ra0), -np.sin(dec0) * np.sin(ra0), np.cos(dec0)])

    r_new = r_unit + (p_unit * pmra + q_unit * pmde) * MAS2RAD * delta_years
    r_new /= np.linalg.norm(r_new)

    ra_new = np.degrees(np.arctan2(r_new[1], r_new[0])) % 360.0
    dec_new = np.degrees(np.arcsin(r_new[2]))
    return float(ra_new), float(dec_new)


def prefilter_box(ra: float, dec: float, half_width_deg: float) -> Tuple[List[Tuple[float, float]], Tuple[float, float]]:
    """
    RA ranges and Dec range of a coarse box around a position.

    The RA range is split in two when it crosses 0/360, and dropped entirely
    (whole circle) when the box reaches a pole.

    Args:
        ra: Right ascension in decimal degrees.
        dec: Declination in decimal degrees.
        half_width_deg: Half-width of the box in degrees.

    Returns:
        Tuple of (list of (ra_min, ra_max) ranges, (dec_min, dec_max))
    """
    dec_min = max(dec - half_width_deg, -90.0)
    dec_max = min(dec + half_width_deg, 90.0)

    if dec_min <= -90.0 or dec_max >= 90.0 or half_width_deg >= 180.0:
        return [(0.0, 360.0)], (dec_min, dec_max)

    ra_min = ra - half_width_deg
    ra_max = ra + half_width_deg
    if ra_min < 0.0:
        return [(ra_min + 360.0, 360.0), (0.0, ra_max)], (dec_min, dec_max)
    if ra_max > 360.0:
        return [(ra_min, 360.0), (0.0, ra_max - 360.0)], (dec_min, dec_max)
    return [(ra_min, ra_max)], (dec_min, dec_max)
