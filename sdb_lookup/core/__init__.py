"""
Core sdb Functionality

This module contains the logic for turning a target name or position into an
sdbid and populating the database for it.

Main components:
- PositionResolver: Resolves names/coordinates and epoch-propagated positions
- IdentifierDeriver: Derives the sdbid from the epoch-2000.0 position
- TargetRegistry: Atomic claims so each sdbid is processed once
- CrossIdCollector: Collects cross-identifiers and detects conflicts
- CatalogueIngestor: Matches the target in each catalogue
- Orchestrator: Runs the steps for one or many targets

Only the shared constants and value types are imported here; import the
components from their modules.
"""

from sdb_lookup.core.models import (
    SDB_EPOCH,
    PROPAGATED_EPOCHS,
    ALL_EPOCHS,
    PositionSource,
    WritePolicy,
    ClaimStatus,
    ConflictStatus,
    ProcessStatus,
    Position,
    PositionRecord,
    CrossIdentifier,
    CatalogueRecord,
    ProcessResult,
)

__all__ = [
    'SDB_EPOCH',
    'PROPAGATED_EPOCHS',
    'ALL_EPOCHS',
    'PositionSource',
    'WritePolicy',
    'ClaimStatus',
    'ConflictStatus',
    'ProcessStatus',
    'Position',
    'PositionRecord',
    'CrossIdentifier',
    'CatalogueRecord',
    'ProcessResult',
]
