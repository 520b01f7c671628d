"""
models.py - Value types shared by the sdb lookup core

Positions, the per-target PositionRecord with its epoch-propagated columns,
cross-identifiers, catalogue rows and the outcome of processing a target.
"""

import enum
from dataclasses import dataclass, field, replace
from typing import Dict, Any, List, Optional, Tuple

# Epoch of the position the sdbid is derived from
SDB_EPOCH = 2000.0

# Characteristic epochs of the catalogues queried downstream:
# WISE 2010.3, AKARI/Spitzer 2007.0, 2MASS 1999.3, Hipparcos/Tycho 1991.25, IRAS 1983.5
PROPAGATED_EPOCHS: Tuple[float, ...] = (2010.3, 2007.0, 1999.3, 1991.25, 1983.5)

ALL_EPOCHS: Tuple[float, ...] = (SDB_EPOCH,) + PROPAGATED_EPOCHS


def epoch_suffix(epoch: float) -> str:
    """Column suffix for an epoch, e.g. 2010.3 -> 'ep2010p3', 1991.25 -> 'ep1991p25'."""
    return "ep" + str(float(epoch)).replace('.', 'p')


class PositionSource(enum.IntEnum):
    """Where a position came from, best first."""
    PM_CATALOGUE = 0
    NAME_RESOLVER = 1
    COORDINATE_NAME = 2
    GIVEN_COORDINATES = 3


class WritePolicy(str, enum.Enum):
    """How catalogue rows are written for a target that already has some."""
    APPEND = "append"
    REPLACE = "replace"


class ClaimStatus(str, enum.Enum):
    CLAIMED = "claimed"
    ALREADY_CLAIMED = "already_claimed"


class ConflictStatus(str, enum.Enum):
    OK = "ok"              # xid not bound yet
    SAME = "same"          # already bound to this sdbid
    CONFLICT = "conflict"  # bound to a different sdbid


class ProcessStatus(str, enum.Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    RESOLUTION_FAILED = "resolution_failed"
    CONFLICT_DETECTED = "conflict_detected"


@dataclass(frozen=True)
class Position:
    """A sky position at a given epoch."""
    ra_deg: float
    dec_deg: float
    epoch: float = SDB_EPOCH
    search_radius_arcsec: float = 2.0
    source_priority: PositionSource = PositionSource.GIVEN_COORDINATES


@dataclass(frozen=True)
class PositionRecord:
    """
    The epoch-2000.0 position of a target and its positions at the catalogue epochs.

    ``epoch_positions`` maps each of PROPAGATED_EPOCHS to (ra, dec) in degrees.
    ``pm_source`` names the proper-motion catalogue the record was seeded from, or
    is None when the 2000.0 position was replicated to every epoch.
    """
    raj2000: float
    dej2000: float
    epoch_positions: Dict[float, Tuple[float, float]] = field(default_factory=dict)
    sdbid: Optional[str] = None
    pm_source: Optional[str] = None

    @classmethod
    def replicated(cls, position: Position) -> "PositionRecord":
        """Record assuming zero proper motion: every epoch gets the 2000.0 position."""
        coords = (position.ra_deg, position.dec_deg)
        return cls(raj2000=position.ra_deg, dej2000=position.dec_deg,
                   epoch_positions={epoch: coords for epoch in PROPAGATED_EPOCHS})

    def position_at(self, epoch: float) -> Tuple[float, float]:
        """(ra, dec) in degrees at one of ALL_EPOCHS."""
        if epoch == SDB_EPOCH:
            return self.raj2000, self.dej2000
        if epoch not in self.epoch_positions:
            raise KeyError(f"No position for epoch {epoch}")
        return self.epoch_positions[epoch]

    def with_sdbid(self, sdbid: str) -> "PositionRecord":
        return replace(self, sdbid=sdbid)

    def to_columns(self) -> Dict[str, Any]:
        """Flatten into the sdb_pm column layout."""
        columns = {
            'sdbid': self.sdbid,
            'raj2000': self.raj2000,
            'dej2000': self.dej2000,
            'pm_source': self.pm_source,
        }
        for epoch in PROPAGATED_EPOCHS:
            ra, dec = self.position_at(epoch)
            suffix = epoch_suffix(epoch)
            columns[f'ra_{suffix}'] = ra
            columns[f'de_{suffix}'] = dec
        return columns

    @classmethod
    def from_columns(cls, columns: Dict[str, Any]) -> "PositionRecord":
        epoch_positions = {}
        for epoch in PROPAGATED_EPOCHS:
            suffix = epoch_suffix(epoch)
            epoch_positions[epoch] = (columns[f'ra_{suffix}'], columns[f'de_{suffix}'])
        return cls(raj2000=columns['raj2000'], dej2000=columns['dej2000'],
                   epoch_positions=epoch_positions, sdbid=columns.get('sdbid'),
                   pm_source=columns.get('pm_source'))


@dataclass(frozen=True)
class CrossIdentifier:
    """An alternate identifier bound to an sdbid."""
    sdbid: str
    xid: str


@dataclass
class ConeMatch:
    """One row returned by a cone search, nearest first."""
    separation_arcsec: float
    catalogue: str
    ra_deg: float
    dec_deg: float
    fields: Dict[str, Any] = field(default_factory=dict)
    epoch_positions: Dict[float, Tuple[float, float]] = field(default_factory=dict)


@dataclass
class CatalogueRecord:
    """A catalogue row associated with an sdbid."""
    sdbid: str
    catalogue: str
    fields: Dict[str, Any] = field(default_factory=dict)
    separation_arcsec: Optional[float] = None


@dataclass
class Resolution:
    """Outcome of resolving a name and/or coordinates."""
    position: Position
    record: PositionRecord
    name: Optional[str] = None


@dataclass
class ProcessResult:
    """Outcome of processing one target."""
    status: ProcessStatus
    sdbid: Optional[str] = None
    name: Optional[str] = None
    message: str = ""
    xids: List[str] = field(default_factory=list)
    skipped_xids: List[str] = field(default_factory=list)
    catalogue_rows: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'sdbid': self.sdbid,
            'name': self.name,
            'message': self.message,
            'xids': list(self.xids),
            'skipped_xids': list(self.skipped_xids),
            'catalogue_rows': dict(self.catalogue_rows),
        }
