"""
irsa_client.py - Cone searches against IRSA catalogues through Gator

Used for catalogues VizieR does not carry, such as the Spitzer Enhanced Imaging
Products source list (slphotdr4).

References:
- Gator API: https://irsa.ipac.caltech.edu/applications/Gator/GatorAid/irsa/catsearch.html
"""

import io
import logging
from typing import List, Sequence

import requests
from astropy.table import Table

from sdb_lookup.core.models import ConeMatch
from sdb_lookup.utils.coordinates import separations_and_bearings
from sdb_lookup.utils.rate_limiter import irsa_rate_limiter, retry_with_backoff
from sdb_lookup.utils.serialization import sanitize_for_json

# Set up logging
logger = logging.getLogger(__name__)


class IrsaGatorClient:
    """
    Cone search service for IRSA catalogues.
    """

    BASE_URL = "https://irsa.ipac.caltech.edu/cgi-bin/Gator/nph-query"

    # outfmt=3 asks for a VOTable
    OUTPUT_FORMAT = 3

    def __init__(self, timeout: int = 60, max_retries: int = 3, backoff_seconds: float = 2.0,
                 row_limit: int = 50):
        """
        Initialize the IRSA client.

        Args:
            timeout: Request timeout in seconds.
            max_retries: Retries on transient failures.
            backoff_seconds: Wait before the first retry.
            row_limit: Maximum rows returned per catalogue.
        """
        self.timeout = timeout
        self.row_limit = row_limit
        self.session = requests.Session()
        self._get = retry_with_backoff(max_retries, backoff_seconds)(self._make_request)

    def search(self, catalogues: Sequence[str], ra: float, dec: float, radius_arcsec: float,
               epochs: Sequence[float] = ()) -> List[ConeMatch]:
        """
        Rows of the given IRSA catalogues within a radius, nearest first.

        Gator catalogues carry no proper motions, so `epochs` is accepted for
        interface compatibility and ignored.

        Raises:
            ServiceUnavailableError: If IRSA cannot be reached after retries.
        """
        matches = []
        for catalogue in catalogues:
            content = self._get(catalogue, ra, dec, radius_arcsec)
            table = self.parse_votable(content)
            if len(table) == 0:
                continue

            ra_col, dec_col = self._position_columns(table)
            if ra_col is None:
                logger.warning(f"No position columns in IRSA {catalogue} result, skipping")
                continue

            separations, _ = separations_and_bearings(ra, dec, table[ra_col], table[dec_col])
            for row, separation in zip(table, separations):
                matches.append(ConeMatch(
                    separation_arcsec=float(separation),
                    catalogue=catalogue,
                    ra_deg=float(row[ra_col]),
                    dec_deg=float(row[dec_col]),
                    fields={column: sanitize_for_json(row[column]) for column in table.colnames},
                ))

        matches.sort(key=lambda m: m.separation_arcsec)
        return matches

    @staticmethod
    def parse_votable(content: bytes) -> Table:
        """Read a Gator VOTable; an empty or table-less response gives an empty Table."""
        if not content or not content.strip():
            return Table()
        try:
            return Table.read(io.BytesIO(content), format='votable')
        except (ValueError, IndexError) as e:
            logger.info(f"No rows in IRSA response ({e})")
            return Table()

    @staticmethod
    def _position_columns(table: Table):
        for ra_col, dec_col in (('ra', 'dec'), ('RA', 'DEC'), ('ra_j2000', 'dec_j2000')):
            if ra_col in table.colnames and dec_col in table.colnames:
                return ra_col, dec_col
        return None, None

    @irsa_rate_limiter
    def _make_request(self, catalogue: str, ra: float, dec: float, radius_arcsec: float) -> bytes:
        params = {
            "catalog": catalogue,
            "spatial": "cone",
            "radius": radius_arcsec,
            "radunits": "arcsec",
            "outrows": self.row_limit,
            "outfmt": self.OUTPUT_FORMAT,
            "objstr": f"{ra} {dec}",
        }
        try:
            logger.debug(f"Making request to {self.BASE_URL} with params {params}")
            response = self.session.get(self.BASE_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.content
        except requests.RequestException as e:
            logger.error(f"IRSA request error: {e}")
            raise
