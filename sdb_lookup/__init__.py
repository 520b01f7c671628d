"""
sdb Target Lookup System

This package adds astronomical targets to the sdb database: it resolves a name
or position, derives a stable identifier (sdbid) from the epoch-2000.0
position, collects cross-identifiers and stores the target's counterparts in a
set of photometric catalogues, each matched at its own epoch.

Main functionality:
- Resolve names and coordinates, with proper-motion epoch propagation
- Derive sdbids and guarantee each target is processed once
- Collect cross-identifiers with conflict detection
- Ingest catalogue counterparts and report on bulk runs
"""

# Version info
__version__ = '0.1.0'
__author__ = 'sdb Team'

from sdb_lookup.config import SdbConfig, load_config
from sdb_lookup.core.identifier import derive_sdbid
from sdb_lookup.core.orchestrator import Orchestrator, build_orchestrator


def add_target(name=None, ra=None, dec=None, config=None):
    """
    Add one target to the sdb with the live services

    Args:
        name: Target name
        ra: Right ascension in degrees at epoch 2000.0
        dec: Declination in degrees at epoch 2000.0
        config: SdbConfig, defaults if None

    Returns:
        ProcessResult for the target
    """
    orchestrator = build_orchestrator(config)
    try:
        return orchestrator.process_target(name=name, ra=ra, dec=dec)
    finally:
        orchestrator.close()


__all__ = [
    'SdbConfig',
    'load_config',
    'derive_sdbid',
    'Orchestrator',
    'build_orchestrator',
    'add_target',
]
