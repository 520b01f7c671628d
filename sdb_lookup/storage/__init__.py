"""
Storage for the sdb

SQLAlchemy table definitions and the Datastore wrapping the operations the
pipeline needs on them.
"""

from sdb_lookup.storage.models import Base, TargetClaim, SdbPm, Xid, CatalogueRow
from sdb_lookup.storage.datastore import Datastore, create_db_engine

__all__ = [
    'Base',
    'TargetClaim',
    'SdbPm',
    'Xid',
    'CatalogueRow',
    'Datastore',
    'create_db_engine',
]
