"""
simbad_client.py - Client for the SIMBAD TAP service

This module queries SIMBAD with ADQL for the object nearest to a position, for
every identifier of an object, and for basic information (spectral type and
parallax) about an object.

References:
- SIMBAD TAP: https://simbad.cds.unistra.fr/simbad/sim-tap
"""

import io
import logging
from typing import Dict, Any, List, Optional

import requests
from astropy.table import Table

from sdb_lookup.utils.rate_limiter import cds_rate_limiter, retry_with_backoff
from sdb_lookup.utils.serialization import sanitize_for_json

# Set up logging
logger = logging.getLogger(__name__)

# Columns of the SIMBAD basic info kept for each target
BASIC_INFO_COLUMNS = ["main_id", "sp_type", "sp_bibcode", "plx_value", "plx_err", "plx_bibcode"]


def adql_string(value: str) -> str:
    """Quote a value as an ADQL string literal."""
    return "'" + value.replace("'", "''") + "'"


class SimbadClient:
    """
    Client for the SIMBAD TAP service (synchronous queries, VOTable output).
    """

    BASE_URL = "https://simbad.cds.unistra.fr/simbad/sim-tap/sync"

    def __init__(self, timeout: int = 60, max_retries: int = 3, backoff_seconds: float = 2.0):
        """
        Initialize the SIMBAD client.

        Args:
            timeout: Request timeout in seconds.
            max_retries: Retries on transient failures.
            backoff_seconds: Wait before the first retry.
        """
        self.timeout = timeout
        self.session = requests.Session()
        self._query = retry_with_backoff(max_retries, backoff_seconds)(self._make_request)

    def query(self, adql: str) -> Table:
        """
        Run an ADQL query.

        Args:
            adql: ADQL query string.

        Returns:
            Astropy Table with the result (possibly empty).

        Raises:
            ServiceUnavailableError: If SIMBAD cannot be reached after retries.
        """
        logger.debug(f"SIMBAD TAP query: {adql}")
        content = self._query(adql)
        return Table.read(io.BytesIO(content), format='votable')

    def nearest_name(self, ra: float, dec: float, radius_arcsec: float) -> Optional[str]:
        """
        Main identifier of the object closest to a position.

        Args:
            ra: Right ascension in decimal degrees.
            dec: Declination in decimal degrees.
            radius_arcsec: Search radius in arcseconds.

        Returns:
            SIMBAD main_id, or None if nothing lies within the radius.
        """
        adql = (
            "SELECT TOP 1 main_id, "
            f"DISTANCE(POINT('ICRS', ra, dec), POINT('ICRS', {ra!r}, {dec!r})) AS dist "
            "FROM basic "
            f"WHERE CONTAINS(POINT('ICRS', ra, dec), CIRCLE('ICRS', {ra!r}, {dec!r}, {radius_arcsec / 3600.0!r})) = 1 "
            "AND ra IS NOT NULL AND dec IS NOT NULL "
            "ORDER BY dist"
        )
        table = self.query(adql)
        if len(table) == 0:
            return None
        return str(table['main_id'][0]).strip()

    def identifiers(self, name: str) -> List[str]:
        """
        Every identifier of the object known to SIMBAD as `name`.

        Args:
            name: Any SIMBAD identifier of the object.

        Returns:
            List of identifiers (including `name` itself), empty if unknown.
        """
        adql = (
            "SELECT id2.id AS xid FROM ident AS id1 "
            "JOIN ident AS id2 USING(oidref) "
            f"WHERE id1.id = {adql_string(name)}"
        )
        table = self.query(adql)
        return [str(xid).strip() for xid in table['xid']] if len(table) else []

    def basic_info(self, name: str) -> Optional[Dict[str, Any]]:
        """
        Spectral type and parallax (with references) of an object.

        Args:
            name: Any SIMBAD identifier of the object.

        Returns:
            Dictionary of BASIC_INFO_COLUMNS, or None if unknown.
        """
        adql = (
            f"SELECT {', '.join('basic.' + c for c in BASIC_INFO_COLUMNS)} "
            "FROM basic JOIN ident ON oidref = oid "
            f"WHERE id = {adql_string(name)}"
        )
        table = self.query(adql)
        if len(table) == 0:
            return None
        row = table[0]
        return {column: sanitize_for_json(row[column]) for column in BASIC_INFO_COLUMNS
                if column in table.colnames}

    @cds_rate_limiter
    def _make_request(self, adql: str) -> bytes:
        params = {
            "request": "doQuery",
            "lang": "adql",
            "format": "votable",
            "query": adql,
        }
        try:
            response = self.session.get(self.BASE_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.content
        except requests.RequestException as e:
            logger.error(f"SIMBAD request error: {e}")
            raise
