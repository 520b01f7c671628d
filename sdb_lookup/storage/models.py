"""
Storage Models
Tables of the sdb database: target claims, proper-motion positions,
cross-identifiers and catalogue rows, all keyed by sdbid.
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, UniqueConstraint, Index
from sqlalchemy.orm import declarative_base

# Base class for all models
Base = declarative_base()


class TargetClaim(Base):
    """
    One row per sdbid, claimed before any other row is written.
    A target counts as processed only once completed_at is set.
    """
    __tablename__ = "targets"

    id = Column(Integer, primary_key=True)
    sdbid = Column(String(40), unique=True, nullable=False, index=True)

    # Token of the run holding the claim
    claim_token = Column(String(36), nullable=False)
    claimed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        state = "complete" if self.completed_at else "in progress"
        return f"<TargetClaim({self.sdbid}, {state})>"


class SdbPm(Base):
    """
    Position of a target at epoch 2000.0 and at each catalogue epoch.
    Written once per sdbid.
    """
    __tablename__ = "sdb_pm"

    sdbid = Column(String(40), primary_key=True)

    # Epoch 2000.0 (the sdbid is derived from these)
    raj2000 = Column(Float, nullable=False)
    dej2000 = Column(Float, nullable=False)

    # WISE
    ra_ep2010p3 = Column(Float, nullable=False)
    de_ep2010p3 = Column(Float, nullable=False)
    # AKARI, Spitzer
    ra_ep2007p0 = Column(Float, nullable=False)
    de_ep2007p0 = Column(Float, nullable=False)
    # 2MASS
    ra_ep1999p3 = Column(Float, nullable=False)
    de_ep1999p3 = Column(Float, nullable=False)
    # Hipparcos, Tycho
    ra_ep1991p25 = Column(Float, nullable=False)
    de_ep1991p25 = Column(Float, nullable=False)
    # IRAS
    ra_ep1983p5 = Column(Float, nullable=False)
    de_ep1983p5 = Column(Float, nullable=False)

    # Proper-motion catalogue the positions came from, NULL if replicated
    pm_source = Column(String(32), nullable=True)

    def __repr__(self):
        return f"<SdbPm({self.sdbid}, {self.raj2000:.6f}, {self.dej2000:.6f})>"


class Xid(Base):
    """
    Cross-identifiers. An xid belongs to at most one sdbid.
    """
    __tablename__ = "xids"

    id = Column(Integer, primary_key=True)
    sdbid = Column(String(40), nullable=False, index=True)
    xid = Column(String(128), nullable=False)

    __table_args__ = (
        UniqueConstraint('xid', name='uq_xids_xid'),
    )

    def __repr__(self):
        return f"<Xid({self.sdbid}, {self.xid})>"


class CatalogueRow(Base):
    """
    A row from an external catalogue matched to an sdbid.
    The catalogue's native columns are kept as JSON.
    """
    __tablename__ = "catalogue_records"

    id = Column(Integer, primary_key=True)
    sdbid = Column(String(40), nullable=False)
    catalogue = Column(String(32), nullable=False)

    # Distance between the target and the matched row
    separation_arcsec = Column(Float, nullable=True)

    fields = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('ix_catalogue_records_sdbid_catalogue', 'sdbid', 'catalogue'),
    )

    def __repr__(self):
        return f"<CatalogueRow({self.sdbid}, {self.catalogue})>"
