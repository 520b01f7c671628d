"""
catalogue_ingestor.py - Stores the counterparts of a target in each catalogue

Every catalogue is described by a CatalogueSpec: where it lives, the epoch its
positions refer to, and how to match. Ingestion is the same loop for all of
them: take the target position at the catalogue epoch, search, keep the best
(or every) match and write the rows for (sdbid, catalogue).

Catalogues are listed roughly in order of wavelength. A missing counterpart or
an unreachable service only affects that catalogue.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from sdb_lookup.clients.local_catalog_client import MirroredTable, SPITZER_IRS_STARE
from sdb_lookup.config import DEFAULT_MATCH_RADIUS_ARCSEC
from sdb_lookup.core.ellipse_matcher import Ellipse, EllipseMatcher
from sdb_lookup.core.models import CatalogueRecord, PositionRecord, WritePolicy
from sdb_lookup.exceptions import ServiceUnavailableError
from sdb_lookup.utils.coordinates import degrees_to_hms

# Set up logging
logger = logging.getLogger(__name__)


class SearchMode(str, enum.Enum):
    CONE = "cone"
    ELLIPSE = "ellipse"


class FindMode(str, enum.Enum):
    BEST = "best"
    ALL = "all"


@dataclass(frozen=True)
class CatalogueSpec:
    """
    How to find a target in one catalogue.

    ``source`` names the service: 'vizier' or 'irsa' for cone searches, 'local'
    for a mirrored table (``table``) matched with ellipses.
    """
    name: str
    epoch: float
    source: str
    catalogue_id: Optional[str] = None
    mode: SearchMode = SearchMode.CONE
    radius_arcsec: Optional[float] = None
    find: FindMode = FindMode.BEST
    table: Optional[MirroredTable] = None
    target_ellipse: Optional[Ellipse] = None
    catalogue_ellipse: Optional[Ellipse] = None
    columns: Optional[Tuple[str, ...]] = None       # columns kept, all if None
    constants: Dict[str, Any] = field(default_factory=dict)  # extra fields on every row


DEFAULT_CATALOGUES: List[CatalogueSpec] = [
    CatalogueSpec(name="tyc2", epoch=1991.25, source="vizier", catalogue_id="I/259/tyc2"),
    # mean epoch of 2MASS, midway through the survey (2006AJ....131.1163S)
    CatalogueSpec(name="2mass", epoch=1999.3, source="vizier", catalogue_id="II/246/out"),
    # midway through the WISE cryogenic mission
    CatalogueSpec(name="allwise", epoch=2010.3, source="vizier", catalogue_id="II/328/allwise"),
    CatalogueSpec(name="akari_irc", epoch=2007.0, source="vizier", catalogue_id="II/297/irc"),
    # SEIP epoch is roughly 2006.9, so the AKARI epoch is used
    CatalogueSpec(name="seip", epoch=2007.0, source="irsa", catalogue_id="slphotdr4"),
    CatalogueSpec(
        name="spitzer_irs",
        epoch=2007.0,
        source="local",
        mode=SearchMode.ELLIPSE,
        find=FindMode.ALL,
        table=SPITZER_IRS_STARE,
        target_ellipse=Ellipse(5.0, 5.0, 0.0),
        catalogue_ellipse=Ellipse(5.0, 5.0, 0.0),
        columns=("name", "ra", "dec_", "aor_key"),
        constants={"instrument": "irsstare", "bibcode": "2011ApJS..196....8L", "private": 0},
    ),
]


class CatalogueIngestor:
    """
    Runs the ingestion loop over a list of CatalogueSpecs.
    """

    def __init__(self, datastore, cone_services: Optional[Dict[str, Any]] = None,
                 local_catalogues=None,
                 catalogues: Optional[List[CatalogueSpec]] = None,
                 match_radius_arcsec: float = DEFAULT_MATCH_RADIUS_ARCSEC,
                 write_policy: WritePolicy = WritePolicy.REPLACE,
                 disabled_catalogues: Optional[List[str]] = None,
                 matcher: Optional[EllipseMatcher] = None):
        """
        Initialize the ingestor.

        Args:
            datastore: Datastore the catalogue rows are written to.
            cone_services: Cone search services by source name ('vizier', 'irsa').
            local_catalogues: LocalCatalogueClient for mirrored tables.
            catalogues: Catalogue list, DEFAULT_CATALOGUES if None.
            match_radius_arcsec: Cone radius for specs without their own.
            write_policy: Whether existing rows for (sdbid, catalogue) are replaced.
            disabled_catalogues: Catalogue names to skip.
            matcher: Ellipse matcher, a default one if None.
        """
        self.datastore = datastore
        self.cone_services = cone_services or {}
        self.local_catalogues = local_catalogues
        self.catalogues = list(DEFAULT_CATALOGUES if catalogues is None else catalogues)
        self.match_radius_arcsec = match_radius_arcsec
        self.write_policy = WritePolicy(write_policy)
        self.disabled_catalogues = set(disabled_catalogues or [])
        self.matcher = matcher or EllipseMatcher()

    def ingest_all(self, sdbid: str, record: PositionRecord) -> Dict[str, int]:
        """
        Ingest every enabled catalogue.

        Returns:
            Rows written per catalogue name.
        """
        written = {}
        for spec in self.catalogues:
            if spec.name in self.disabled_catalogues:
                logger.info(f"Skipping disabled catalogue {spec.name}")
                continue
            written[spec.name] = self.ingest(sdbid, record, spec)
        return written

    def ingest(self, sdbid: str, record: PositionRecord, spec: CatalogueSpec) -> int:
        """
        Find a target in one catalogue and write what was found.

        Args:
            sdbid: The target's sdbid.
            record: Its PositionRecord.
            spec: The catalogue.

        Returns:
            Number of rows written; 0 when there is no counterpart or the service
            is unavailable.
        """
        ra, dec = record.position_at(spec.epoch)
        ra_hms, dec_dms = degrees_to_hms(ra, dec)
        logger.info(f"Looking for {spec.name} entry at {ra_hms} {dec_dms} (epoch {spec.epoch})")

        try:
            if spec.mode is SearchMode.ELLIPSE:
                found = self._ellipse_search(sdbid, ra, dec, spec)
            else:
                found = self._cone_search(sdbid, ra, dec, spec)
        except ServiceUnavailableError as e:
            logger.warning(f"{spec.name} unavailable, no rows for {sdbid}: {e}")
            return 0
        except SQLAlchemyError as e:
            logger.error(f"Error querying local table for {spec.name}: {e}")
            return 0

        if not found:
            logger.info(f"No {spec.name} entry for {sdbid}")
            if self.write_policy is WritePolicy.APPEND:
                return 0

        written = self.datastore.write_catalogue_records(sdbid, spec.name, found, self.write_policy)
        if written:
            logger.info(f"Wrote {written} {spec.name} row(s) for {sdbid}")
        return written

    def _cone_search(self, sdbid: str, ra: float, dec: float, spec: CatalogueSpec) -> List[CatalogueRecord]:
        service = self.cone_services.get(spec.source)
        if service is None:
            raise ValueError(f"No cone search service '{spec.source}' for {spec.name}")

        radius = spec.radius_arcsec or self.match_radius_arcsec
        matches = service.search([spec.catalogue_id], ra, dec, radius)
        if spec.find is FindMode.BEST:
            matches = matches[:1]

        return [CatalogueRecord(sdbid=sdbid, catalogue=spec.name,
                                fields=self._fields(m.fields, spec),
                                separation_arcsec=m.separation_arcsec)
                for m in matches]

    def _ellipse_search(self, sdbid: str, ra: float, dec: float, spec: CatalogueSpec) -> List[CatalogueRecord]:
        if self.local_catalogues is None or spec.table is None:
            logger.info(f"No local catalogue for {spec.name}")
            return []

        rows = self.local_catalogues.box_search(spec.table, ra, dec)
        args = (ra, dec, spec.target_ellipse, rows, spec.catalogue_ellipse)
        kwargs = dict(ra_column=spec.table.ra_column, dec_column=spec.table.dec_column)
        if spec.find is FindMode.ALL:
            matches = self.matcher.match_all(*args, **kwargs)
        else:
            best = self.matcher.match_best(*args, **kwargs)
            matches = [best] if best else []

        return [CatalogueRecord(sdbid=sdbid, catalogue=spec.name,
                                fields=self._fields(m.row, spec),
                                separation_arcsec=m.separation_arcsec)
                for m in matches]

    @staticmethod
    def _fields(row: Dict[str, Any], spec: CatalogueSpec) -> Dict[str, Any]:
        if spec.columns is None:
            fields = dict(row)
        else:
            fields = {column: row.get(column) for column in spec.columns}
        fields.update(spec.constants)
        return fields
