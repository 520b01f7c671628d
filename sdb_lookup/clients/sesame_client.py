"""
sesame_client.py - Client for the CDS Sesame name resolver

This module resolves object names (e.g. "Vega", "HD 172167") to ICRS positions
at epoch 2000.0 using Sesame, which looks in SIMBAD, NED and VizieR in turn.

References:
- Sesame documentation: https://cds.unistra.fr/cgi-bin/Sesame
"""

import logging
import xml.etree.ElementTree as ET
from typing import Optional, Tuple
from urllib.parse import quote

import requests

from sdb_lookup.utils.rate_limiter import cds_rate_limiter, retry_with_backoff

# Set up logging
logger = logging.getLogger(__name__)


class SesameClient:
    """
    Client for the CDS Sesame name resolver.

    Only the first resolver answering with a position is used.
    """

    # -ox: XML output, SNV: SIMBAD then NED then VizieR
    BASE_URL = "https://cds.unistra.fr/cgi-bin/nph-sesame/-ox/SNV"

    def __init__(self, timeout: int = 30, max_retries: int = 3, backoff_seconds: float = 2.0):
        """
        Initialize the Sesame client.

        Args:
            timeout: Request timeout in seconds.
            max_retries: Retries on transient failures.
            backoff_seconds: Wait before the first retry.
        """
        self.timeout = timeout
        self.session = requests.Session()
        self._get = retry_with_backoff(max_retries, backoff_seconds)(self._make_request)

    def resolve(self, name: str) -> Optional[Tuple[float, float]]:
        """
        Resolve a name to a position.

        Args:
            name: Object name.

        Returns:
            (ra, dec) in decimal degrees, or None if Sesame knows no such object.

        Raises:
            ServiceUnavailableError: If Sesame cannot be reached after retries.
        """
        logger.debug(f"Sesame lookup for '{name}'")
        text = self._get(name)
        position = self.parse_response(text)
        if position is None:
            logger.info(f"Sesame found nothing for '{name}'")
        else:
            logger.info(f"Sesame got coords {position[0]:.7f},{position[1]:.7f} for '{name}'")
        return position

    @staticmethod
    def parse_response(text: str) -> Optional[Tuple[float, float]]:
        """
        Extract the first jradeg/jdedeg pair from a Sesame XML response.

        Args:
            text: XML document returned by Sesame.

        Returns:
            (ra, dec) in decimal degrees, or None if no resolver returned a position.
        """
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            logger.error(f"Error parsing Sesame response: {e}")
            return None

        for resolver in root.iter('Resolver'):
            ra = resolver.findtext('jradeg')
            dec = resolver.findtext('jdedeg')
            if ra and dec:
                return float(ra), float(dec)
        return None

    @cds_rate_limiter
    def _make_request(self, name: str) -> str:
        url = f"{self.BASE_URL}?{quote(name)}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.text
        except requests.RequestException as e:
            logger.error(f"Sesame request error: {e}")
            raise
