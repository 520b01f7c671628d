"""
config.py - Configuration for the sdb lookup pipeline

Defaults live here as module constants. A JSON file can override any field of
SdbConfig, and command line options override the file.
"""

import os
import json
import logging
from dataclasses import dataclass, field, fields, asdict
from typing import Dict, Any, List, Optional

# Set up logging
logger = logging.getLogger(__name__)

# Default match radius for cone searches and reverse name resolution (arcsec)
DEFAULT_MATCH_RADIUS_ARCSEC = 2.0

# Version prefix of every sdbid
DEFAULT_SDB_PREFIX = "sdb-v1-"

# VizieR mirror used for cone searches
DEFAULT_VIZIER_SERVER = "vizier.cds.unistra.fr"

# Half-width of the box used to pre-filter locally mirrored catalogues (deg)
DEFAULT_PREFILTER_BOX_DEG = 5.0

# Incomplete claims older than this are assumed to belong to a crashed run
DEFAULT_STALE_CLAIM_SECONDS = 3600

DEFAULT_DATABASE_URL = "sqlite:///sdb.db"
DEFAULT_PHOTOMETRY_URL = "sqlite:///photometry.db"

# Proper-motion catalogues searched together, in priority order
DEFAULT_PM_CATALOGUES = ["I/311/hip2", "I/259/tyc2", "I/322A/out", "I/317/sample"]


@dataclass
class SdbConfig:
    """Settings shared by the clients, the datastore and the orchestrator."""
    database_url: str = DEFAULT_DATABASE_URL
    photometry_url: str = DEFAULT_PHOTOMETRY_URL
    sdb_prefix: str = DEFAULT_SDB_PREFIX
    match_radius_arcsec: float = DEFAULT_MATCH_RADIUS_ARCSEC
    vizier_server: str = DEFAULT_VIZIER_SERVER
    pm_catalogues: List[str] = field(default_factory=lambda: list(DEFAULT_PM_CATALOGUES))
    prefilter_box_deg: float = DEFAULT_PREFILTER_BOX_DEG
    stale_claim_seconds: int = DEFAULT_STALE_CLAIM_SECONDS
    write_policy: str = "replace"
    timeout: int = 60
    max_retries: int = 3
    backoff_seconds: float = 2.0
    disabled_catalogues: List[str] = field(default_factory=list)

    def update(self, overrides: Dict[str, Any]) -> "SdbConfig":
        """
        Return a copy with the given fields replaced.

        Keys that are not SdbConfig fields, and values that are None, are ignored
        so that unset command line options do not clobber the file values.
        """
        known = {f.name for f in fields(self)}
        values = asdict(self)
        for key, value in overrides.items():
            if key not in known:
                logger.warning(f"Ignoring unknown configuration key: {key}")
                continue
            if value is not None:
                values[key] = value
        return SdbConfig(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> SdbConfig:
    """
    Build the configuration from defaults, an optional JSON file and overrides.

    Args:
        path: Path to a JSON file with SdbConfig fields. Missing files are an error.
        overrides: Values that take precedence over the file (e.g. CLI options).

    Returns:
        The merged SdbConfig.
    """
    config = SdbConfig()

    if path is not None:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Configuration file not found: {path}")
        with open(path, 'r') as f:
            file_values = json.load(f)
        logger.info(f"Loaded configuration from {path}")
        config = config.update(file_values)

    if overrides:
        config = config.update(overrides)

    return config
