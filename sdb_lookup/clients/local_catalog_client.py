"""
local_catalog_client.py - Access to bulk catalogues mirrored in a local database

Some catalogues (IRAS FSC and PSC, the Spitzer observing log) are kept in full
in a local "photometry" database rather than queried remotely. This client
returns the rows inside a coarse RA/Dec box around a position; a precise cone
or ellipse match is done afterwards.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional

import pandas as pd
from sqlalchemy import text

from sdb_lookup.storage.datastore import create_db_engine
from sdb_lookup.utils.coordinates import prefilter_box

# Set up logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MirroredTable:
    """A locally mirrored catalogue table and the names of its position columns."""
    name: str
    ra_column: str = "_RAJ2000"
    dec_column: str = "_DEJ2000"
    where: Optional[str] = None  # extra SQL condition, e.g. "aot = 'irsstare'"


IRAS_FSC = MirroredTable("iras_fsc")
IRAS_PSC = MirroredTable("iras_psc")
SPITZER_IRS_STARE = MirroredTable("spitzer_obslog", ra_column="ra", dec_column="dec_",
                                  where="aot = 'irsstare'")


class LocalCatalogueClient:
    """
    Client for catalogues mirrored in a local SQL database.
    """

    def __init__(self, url: str, prefilter_box_deg: float = 5.0):
        """
        Initialize the local catalogue client.

        Args:
            url: SQLAlchemy URL of the database holding the mirrored tables.
            prefilter_box_deg: Half-width of the pre-filter box in degrees.
        """
        self.url = url
        self.prefilter_box_deg = prefilter_box_deg
        self.engine = create_db_engine(url)

    def box_search(self, table: MirroredTable, ra: float, dec: float,
                   half_width_deg: Optional[float] = None) -> pd.DataFrame:
        """
        Rows of a mirrored table within a RA/Dec box around a position.

        Args:
            table: Mirrored table description.
            ra: Right ascension in decimal degrees.
            dec: Declination in decimal degrees.
            half_width_deg: Box half-width; defaults to prefilter_box_deg.

        Returns:
            Pandas DataFrame of the rows inside the box (possibly empty).
        """
        half_width = self.prefilter_box_deg if half_width_deg is None else half_width_deg
        ra_ranges, (dec_min, dec_max) = prefilter_box(ra, dec, half_width)

        params: Dict[str, Any] = {"dec_min": dec_min, "dec_max": dec_max}
        ra_clauses = []
        for i, (ra_min, ra_max) in enumerate(ra_ranges):
            ra_clauses.append(f"{table.ra_column} BETWEEN :ra_min_{i} AND :ra_max_{i}")
            params[f"ra_min_{i}"] = ra_min
            params[f"ra_max_{i}"] = ra_max

        conditions = [f"{table.dec_column} BETWEEN :dec_min AND :dec_max",
                      "(" + " OR ".join(ra_clauses) + ")"]
        if table.where:
            conditions.append(f"({table.where})")

        query = text(f"SELECT * FROM {table.name} WHERE " + " AND ".join(conditions))

        with self.engine.connect() as connection:
            rows = pd.read_sql(query, connection, params=params)

        logger.debug(f"{len(rows)} rows of {table.name} within {half_width} deg of {ra},{dec}")
        return rows
