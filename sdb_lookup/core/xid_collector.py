"""
xid_collector.py - Collects cross-identifiers for a target

Cross-identifiers (xids) are the other names a target is known by. Each xid is
bound to exactly one sdbid; the sdbid itself is always one of its own xids.
They come from the SIMBAD identifier list of the target's name, from the name
itself, and from positional matches against locally mirrored IRAS catalogues.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from sdb_lookup.clients.local_catalog_client import MirroredTable, IRAS_FSC, IRAS_PSC
from sdb_lookup.core.ellipse_matcher import Ellipse, EllipseMatcher
from sdb_lookup.core.models import ConflictStatus, CrossIdentifier, PositionRecord
from sdb_lookup.exceptions import IdentifierConflictError, ServiceUnavailableError

# Set up logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MirroredXidSource:
    """A locally mirrored catalogue whose matched entry becomes an xid."""
    name: str
    table: MirroredTable
    pattern: str              # regex an existing xid from this catalogue matches
    epoch: float
    id_column: str
    target_ellipse: Ellipse
    catalogue_ellipse: Ellipse


# IRAS positions are FK5 at epoch 1983.5 and their error ellipses are much
# larger than the target's
IRAS_XID_SOURCES = [
    MirroredXidSource(
        name="IRAS FSC",
        table=IRAS_FSC,
        pattern=r'^IRAS F',
        epoch=1983.5,
        id_column="IRAS_ID",
        target_ellipse=Ellipse(1.0, 1.0, 0.0),
        catalogue_ellipse=Ellipse("Major", "Minor", "PosAng"),
    ),
    MirroredXidSource(
        name="IRAS PSC",
        table=IRAS_PSC,
        pattern=r'^IRAS [0-9]',
        epoch=1983.5,
        id_column="IRAS_ID",
        target_ellipse=Ellipse(1.0, 1.0, 0.0),
        catalogue_ellipse=Ellipse("Major", "Minor", "PosAng"),
    ),
]


@dataclass
class XidCollection:
    """Outcome of collecting xids for one target."""
    added: List[CrossIdentifier]
    skipped: List[str]


class CrossIdCollector:
    """
    Collects and stores cross-identifiers, refusing to rebind an xid.
    """

    def __init__(self, datastore, simbad=None, local_catalogues=None,
                 mirrored_sources: Sequence[MirroredXidSource] = IRAS_XID_SOURCES,
                 matcher: Optional[EllipseMatcher] = None):
        """
        Initialize the collector.

        Args:
            datastore: Datastore holding the xid table.
            simbad: Service with ``identifiers(name)``; None disables the SIMBAD step.
            local_catalogues: LocalCatalogueClient for the mirrored catalogues; None
                              disables the positional matches.
            mirrored_sources: Mirrored catalogues to match against.
            matcher: Ellipse matcher, a default one if None.
        """
        self.datastore = datastore
        self.simbad = simbad
        self.local_catalogues = local_catalogues
        self.mirrored_sources = list(mirrored_sources)
        self.matcher = matcher or EllipseMatcher()

    def check_conflict(self, sdbid: str, xid: str) -> ConflictStatus:
        """
        Whether binding xid to sdbid is allowed.

        Returns:
            ConflictStatus.OK if the xid is unbound, SAME if already bound to this
            sdbid, CONFLICT if bound to another.
        """
        owner = self.datastore.xid_owner(xid)
        if owner is None:
            return ConflictStatus.OK
        if owner == sdbid:
            return ConflictStatus.SAME
        return ConflictStatus.CONFLICT

    def collect(self, sdbid: str, record: PositionRecord, name: Optional[str] = None) -> XidCollection:
        """
        Gather and store every xid of a target.

        Args:
            sdbid: The target's sdbid.
            record: Its PositionRecord, for the positional matches.
            name: Name the target was given as or resolved to.

        Returns:
            XidCollection with the CrossIdentifiers added and the xids skipped
            because they are bound to another sdbid.

        Raises:
            IdentifierConflictError: If ``name`` is bound to a different sdbid.
        """
        collection = XidCollection(added=[], skipped=[])

        self._bind(sdbid, sdbid, collection, required=True)

        if name:
            for alternate in self._simbad_identifiers(name):
                self._bind(sdbid, alternate, collection)
            self._bind(sdbid, name, collection, required=True)

        for source in self.mirrored_sources:
            xid = self._mirrored_xid(sdbid, record, source)
            if xid:
                self._bind(sdbid, xid, collection)

        logger.info(f"{len(collection.added)} xids added for {sdbid}, {len(collection.skipped)} skipped")
        return collection

    def _bind(self, sdbid: str, xid: str, collection: XidCollection, required: bool = False) -> None:
        xid = xid.strip()
        if not xid:
            return

        status = self.check_conflict(sdbid, xid)
        if status is ConflictStatus.SAME:
            logger.debug(f"Not adding {xid} as xid, already in list")
            return
        if status is ConflictStatus.CONFLICT or not self.datastore.add_xid(sdbid, xid):
            owner = self.datastore.xid_owner(xid)
            if owner == sdbid:
                return
            if required:
                raise IdentifierConflictError(xid, sdbid, owner)
            logger.warning(f"Skipping xid {xid}, already bound to {owner}")
            collection.skipped.append(xid)
            return
        collection.added.append(CrossIdentifier(sdbid=sdbid, xid=xid))

    def _simbad_identifiers(self, name: str) -> List[str]:
        if self.simbad is None:
            return []
        logger.info(f"Using id {name} to find xids")
        try:
            return self.simbad.identifiers(name)
        except ServiceUnavailableError as e:
            logger.warning(f"SIMBAD identifier lookup failed for {name}: {e}")
            return []

    def _mirrored_xid(self, sdbid: str, record: PositionRecord, source: MirroredXidSource) -> Optional[str]:
        """Identifier of the best matching entry in a mirrored catalogue, if any."""
        if self.local_catalogues is None:
            return None

        existing = [xid for xid in self.datastore.xids_for(sdbid) if re.match(source.pattern, xid)]
        if existing:
            logger.info(f"Have {source.name} ID: {existing[0]}")
            return None

        logger.info(f"{source.name} ID not present, looking")
        ra, dec = record.position_at(source.epoch)
        try:
            rows = self.local_catalogues.box_search(source.table, ra, dec)
        except SQLAlchemyError as e:
            logger.error(f"Error querying local {source.name} table: {e}")
            return None
        match = self.matcher.match_best(ra, dec, source.target_ellipse, rows, source.catalogue_ellipse,
                                        ra_column=source.table.ra_column,
                                        dec_column=source.table.dec_column)
        if match is None:
            logger.info(f"No {source.name} match")
            return None

        xid = match.row.get(source.id_column)
        return str(xid) if xid is not None else None
