"""
ellipse_matcher.py - Positional matching with elliptical uncertainties

A target and a catalogue entry match when their on-sky separation is no larger
than the sum of the radii of the two error ellipses along the line joining them.
The ratio of the separation to that sum is the normalized separation; a value
of 1 or less is a match and the smallest value is the best match.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Union

import numpy as np
import pandas as pd

from sdb_lookup.utils.coordinates import separations_and_bearings, ellipse_radius
from sdb_lookup.utils.serialization import sanitize_for_json

# Set up logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ellipse:
    """
    Error ellipse, semi-axes in arcsec and position angle in degrees east of north.

    For catalogue ellipses each parameter may instead name a column holding the
    per-row value.
    """
    semi_major: Union[float, str]
    semi_minor: Union[float, str]
    position_angle: Union[float, str] = 0.0

    def values(self, rows: Optional[pd.DataFrame] = None):
        """(semi_major, semi_minor, position_angle) as floats or per-row arrays."""
        return tuple(self._value(p, rows) for p in (self.semi_major, self.semi_minor,
                                                     self.position_angle))

    @staticmethod
    def _value(parameter, rows):
        if isinstance(parameter, str):
            if rows is None or parameter not in rows.columns:
                raise KeyError(f"Ellipse column '{parameter}' not available")
            return pd.to_numeric(rows[parameter], errors='coerce').fillna(0.0).to_numpy(dtype=float)
        return float(parameter)


@dataclass
class EllipseMatch:
    """A catalogue row matched to a target."""
    row: Dict[str, Any]
    separation_arcsec: float
    normalized_separation: float
    notes: List[str] = field(default_factory=list)


class EllipseMatcher:
    """
    Matches a target position against catalogue rows using error ellipses.
    """

    def __init__(self, ra_column: str = "_RAJ2000", dec_column: str = "_DEJ2000"):
        """
        Initialize the matcher.

        Args:
            ra_column: Default name of the catalogue RA column (degrees).
            dec_column: Default name of the catalogue Dec column (degrees).
        """
        self.ra_column = ra_column
        self.dec_column = dec_column

    def match_all(self, ra: float, dec: float, target_ellipse: Ellipse,
                  rows: pd.DataFrame, catalogue_ellipse: Ellipse,
                  ra_column: Optional[str] = None, dec_column: Optional[str] = None) -> List[EllipseMatch]:
        """
        Every catalogue row whose ellipse overlaps the target's, best first.

        Args:
            ra: Target right ascension in degrees (at the catalogue epoch).
            dec: Target declination in degrees (at the catalogue epoch).
            target_ellipse: Error ellipse of the target.
            rows: Candidate catalogue rows.
            catalogue_ellipse: Error ellipse of the catalogue rows.
            ra_column: Catalogue RA column, defaults to the matcher's.
            dec_column: Catalogue Dec column, defaults to the matcher's.

        Returns:
            List of EllipseMatch sorted by normalized separation, ties broken by
            the smaller angular separation.
        """
        if rows is None or len(rows) == 0:
            return []

        ra_column = ra_column or self.ra_column
        dec_column = dec_column or self.dec_column

        rows = rows.reset_index(drop=True)
        separations, bearings = separations_and_bearings(
            ra, dec, rows[ra_column].to_numpy(dtype=float), rows[dec_column].to_numpy(dtype=float))

        a_t, b_t, pa_t = target_ellipse.values()
        a_c, b_c, pa_c = catalogue_ellipse.values(rows)

        # ellipses are symmetric, so the reverse bearing gives the same catalogue radius
        reach = ellipse_radius(a_t, b_t, pa_t, bearings) + ellipse_radius(a_c, b_c, pa_c, bearings)
        with np.errstate(divide='ignore', invalid='ignore'):
            normalized = np.where(reach > 0, separations / reach,
                                  np.where(separations == 0, 0.0, np.inf))

        matched = np.flatnonzero(normalized <= 1.0)
        order = sorted(matched, key=lambda i: (normalized[i], separations[i]))

        matches = []
        for i in order:
            matches.append(EllipseMatch(
                row=sanitize_for_json(rows.iloc[i].to_dict()),
                separation_arcsec=float(separations[i]),
                normalized_separation=float(normalized[i]),
                notes=[f"Position separation: {separations[i]:.3f} arcsec"],
            ))

        logger.debug(f"{len(matches)} of {len(rows)} rows match within ellipses at {ra},{dec}")
        return matches

    def match_best(self, ra: float, dec: float, target_ellipse: Ellipse,
                   rows: pd.DataFrame, catalogue_ellipse: Ellipse,
                   ra_column: Optional[str] = None, dec_column: Optional[str] = None) -> Optional[EllipseMatch]:
        """
        The catalogue row with the smallest normalized separation, or None.

        Takes the same arguments as match_all.
        """
        matches = self.match_all(ra, dec, target_ellipse, rows, catalogue_ellipse,
                                 ra_column=ra_column, dec_column=dec_column)
        return matches[0] if matches else None
