"""
name_resolver.py - Forward and reverse name resolution against CDS services

Names are resolved to positions with Sesame; positions are resolved to names
with a SIMBAD cone search.
"""

import logging
from typing import Optional, Tuple

from sdb_lookup.clients.sesame_client import SesameClient
from sdb_lookup.clients.simbad_client import SimbadClient

# Set up logging
logger = logging.getLogger(__name__)


class CdsNameResolver:
    """Name resolver backed by Sesame (name -> position) and SIMBAD (position -> name)."""

    def __init__(self, sesame: Optional[SesameClient] = None, simbad: Optional[SimbadClient] = None,
                 timeout: int = 60, max_retries: int = 3, backoff_seconds: float = 2.0):
        self.sesame = sesame or SesameClient(timeout=timeout, max_retries=max_retries,
                                             backoff_seconds=backoff_seconds)
        self.simbad = simbad or SimbadClient(timeout=timeout, max_retries=max_retries,
                                             backoff_seconds=backoff_seconds)

    def resolve_by_name(self, name: str) -> Optional[Tuple[float, float]]:
        """(ra, dec) in degrees at epoch 2000.0, or None if the name is unknown."""
        return self.sesame.resolve(name)

    def resolve_by_position(self, ra: float, dec: float, radius_arcsec: float) -> Optional[str]:
        """Name of the nearest object within the radius, or None."""
        name = self.simbad.nearest_name(ra, dec, radius_arcsec)
        if name:
            logger.info(f"Found '{name}' at given coords {ra},{dec}")
        else:
            logger.info(f"No object found at {ra},{dec}")
        return name
