"""
vizier_client.py - Cone searches against VizieR catalogues

This module wraps astroquery's Vizier interface. Several catalogues can be
searched in one call; the rows of all of them are merged and sorted by
separation from the search position. For proper-motion catalogues each row also
carries its position propagated to the requested epochs.

References:
- VizieR: https://vizier.cds.unistra.fr/
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
import astropy.units as u
from astropy.coordinates import SkyCoord
from astroquery.vizier import Vizier

from sdb_lookup.config import DEFAULT_VIZIER_SERVER
from sdb_lookup.core.models import ConeMatch, SDB_EPOCH
from sdb_lookup.utils.coordinates import separations_and_bearings, propagate_position
from sdb_lookup.utils.rate_limiter import cds_rate_limiter, retry_with_backoff
from sdb_lookup.utils.serialization import sanitize_for_json

# Set up logging
logger = logging.getLogger(__name__)

# Proper motion columns (mas/yr, RA component includes cos(dec)) in Hipparcos,
# Tycho-2, UCAC4 and PPMXL
PMRA_COLUMN = "pmRA"
PMDE_COLUMN = "pmDE"


def _cell(row, column: str) -> Optional[float]:
    """Numeric value of a table cell, None if absent or masked."""
    if column not in row.colnames:
        return None
    value = row[column]
    if value is np.ma.masked:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return None if np.isnan(value) else value


class VizierClient:
    """
    Cone search service for VizieR catalogues.
    """

    def __init__(self, server: str = DEFAULT_VIZIER_SERVER, timeout: int = 60,
                 max_retries: int = 3, backoff_seconds: float = 2.0, row_limit: int = 50):
        """
        Initialize the VizieR client.

        Args:
            server: VizieR mirror host name.
            timeout: Request timeout in seconds.
            max_retries: Retries on transient failures.
            backoff_seconds: Wait before the first retry.
            row_limit: Maximum rows returned per catalogue.
        """
        self.server = server
        self.timeout = timeout
        self.row_limit = row_limit
        self._query = retry_with_backoff(max_retries, backoff_seconds)(self._query_region)

    def search(self, catalogues: Sequence[str], ra: float, dec: float, radius_arcsec: float,
               epochs: Sequence[float] = ()) -> List[ConeMatch]:
        """
        Rows of the given catalogues within a radius, nearest first.

        Args:
            catalogues: VizieR catalogue or table identifiers (e.g. "I/259/tyc2").
            ra: Right ascension in decimal degrees (J2000).
            dec: Declination in decimal degrees (J2000).
            radius_arcsec: Search radius in arcseconds.
            epochs: Epochs to which each row's position is propagated using its
                    proper motion (rows without proper motion keep their position).

        Returns:
            List of ConeMatch sorted by separation.

        Raises:
            ServiceUnavailableError: If VizieR cannot be reached after retries.
        """
        tables = self._query(list(catalogues), ra, dec, radius_arcsec)

        matches = []
        for catalogue in tables.keys():
            table = tables[catalogue]
            if len(table) == 0:
                continue
            if '_RAJ2000' not in table.colnames or '_DEJ2000' not in table.colnames:
                logger.warning(f"No J2000 position columns in {catalogue}, skipping")
                continue

            separations, _ = separations_and_bearings(ra, dec, table['_RAJ2000'], table['_DEJ2000'])
            for row, separation in zip(table, separations):
                row_ra = float(row['_RAJ2000'])
                row_dec = float(row['_DEJ2000'])
                pmra = _cell(row, PMRA_COLUMN)
                pmde = _cell(row, PMDE_COLUMN)
                epoch_positions = {
                    epoch: propagate_position(row_ra, row_dec, pmra, pmde, SDB_EPOCH, epoch)
                    for epoch in epochs
                }
                fields = {column: sanitize_for_json(row[column]) for column in table.colnames}
                matches.append(ConeMatch(
                    separation_arcsec=float(separation),
                    catalogue=catalogue,
                    ra_deg=row_ra,
                    dec_deg=row_dec,
                    fields=fields,
                    epoch_positions=epoch_positions,
                ))

        matches.sort(key=lambda m: m.separation_arcsec)
        logger.debug(f"VizieR returned {len(matches)} rows from {', '.join(catalogues)}")
        return matches

    @cds_rate_limiter
    def _query_region(self, catalogues: List[str], ra: float, dec: float, radius_arcsec: float):
        vizier = Vizier(
            columns=['**', '_RAJ2000', '_DEJ2000'],
            catalog=catalogues,
            row_limit=self.row_limit,
            timeout=self.timeout,
            vizier_server=self.server,
        )
        center = SkyCoord(ra=ra*u.deg, dec=dec*u.deg, frame='icrs')
        return vizier.query_region(center, radius=radius_arcsec*u.arcsec)
