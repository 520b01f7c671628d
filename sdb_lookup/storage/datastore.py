"""
Datastore
SQLAlchemy engine and session management plus the key/row operations the
pipeline needs: atomic target claims, the position record, cross-identifiers
and catalogue rows.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional, Iterable, Iterator

from sqlalchemy import create_engine, select, update, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from sdb_lookup.core.models import PositionRecord, CatalogueRecord, WritePolicy
from sdb_lookup.storage.models import Base, TargetClaim, SdbPm, Xid, CatalogueRow
from sdb_lookup.utils.serialization import sanitize_for_json

# Set up logging
logger = logging.getLogger(__name__)

# Tables holding rows keyed by sdbid, other than the claim itself
TARGET_TABLES = (SdbPm, Xid, CatalogueRow)


def create_db_engine(url: str, echo: bool = False):
    """
    Create an engine for the given database URL.

    In-memory SQLite databases share one connection so that every session sees
    the same data.
    """
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=echo,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        url,
        echo=echo,
        future=True,
        pool_pre_ping=True,    # Check connection health before use
        pool_recycle=3600,     # Recycle connections every hour
    )


class Datastore:
    """Table-oriented store for everything keyed by sdbid."""

    def __init__(self, url: str, echo: bool = False, create: bool = True):
        """
        Connect to the database.

        Args:
            url: SQLAlchemy database URL.
            echo: Log every SQL statement.
            create: Create missing tables.
        """
        self.url = url
        self.engine = create_db_engine(url, echo=echo)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )
        if create:
            self.create_schema()

    def create_schema(self, drop: bool = False) -> None:
        """Create all tables, dropping them first if requested."""
        if drop:
            logger.warning(f"Dropping all sdb tables in {self.url}")
            Base.metadata.drop_all(self.engine)
        Base.metadata.create_all(self.engine)

    def close(self) -> None:
        """Close database connections."""
        self.engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session committed on success and rolled back on error."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # Target claims

    def get_claim(self, sdbid: str) -> Optional[TargetClaim]:
        with self.session() as session:
            return session.execute(
                select(TargetClaim).where(TargetClaim.sdbid == sdbid)
            ).scalar_one_or_none()

    def insert_claim(self, sdbid: str, token: str, now: Optional[datetime] = None) -> bool:
        """
        Insert a claim unless one exists. Returns False if the sdbid is already claimed.
        The uniqueness constraint on sdbid makes this the atomic step.
        """
        try:
            with self.session() as session:
                session.add(TargetClaim(sdbid=sdbid, claim_token=token,
                                        claimed_at=now or datetime.utcnow()))
        except IntegrityError:
            logger.debug(f"Claim on {sdbid} already exists")
            return False
        return True

    def take_over_claim(self, sdbid: str, old_token: str, new_token: str,
                        now: Optional[datetime] = None) -> bool:
        """
        Swap the token of an incomplete claim. Only one of several racing callers
        holding the same old token succeeds.
        """
        with self.session() as session:
            result = session.execute(
                update(TargetClaim)
                .where(TargetClaim.sdbid == sdbid,
                       TargetClaim.claim_token == old_token,
                       TargetClaim.completed_at.is_(None))
                .values(claim_token=new_token, claimed_at=now or datetime.utcnow())
            )
            return result.rowcount == 1

    def mark_complete(self, sdbid: str, token: str, now: Optional[datetime] = None) -> bool:
        """Set the completion marker, provided the claim still holds the token."""
        with self.session() as session:
            result = session.execute(
                update(TargetClaim)
                .where(TargetClaim.sdbid == sdbid, TargetClaim.claim_token == token)
                .values(completed_at=now or datetime.utcnow())
            )
            return result.rowcount == 1

    def release_claim(self, sdbid: str, token: str) -> bool:
        """Delete an incomplete claim, provided it still holds the token."""
        with self.session() as session:
            result = session.execute(
                delete(TargetClaim)
                .where(TargetClaim.sdbid == sdbid,
                       TargetClaim.claim_token == token,
                       TargetClaim.completed_at.is_(None))
            )
            return result.rowcount == 1

    def purge(self, sdbid: str) -> int:
        """Delete every row keyed by sdbid except the claim. Returns rows deleted."""
        deleted = 0
        with self.session() as session:
            for table in TARGET_TABLES:
                result = session.execute(delete(table).where(table.sdbid == sdbid))
                deleted += result.rowcount
        if deleted:
            logger.info(f"Deleted {deleted} partial rows for {sdbid}")
        return deleted

    # Position records

    def insert_position_record(self, record: PositionRecord) -> None:
        if record.sdbid is None:
            raise ValueError("PositionRecord has no sdbid")
        with self.session() as session:
            session.add(SdbPm(**record.to_columns()))

    def get_position_record(self, sdbid: str) -> Optional[PositionRecord]:
        with self.session() as session:
            row = session.get(SdbPm, sdbid)
            if row is None:
                return None
            columns = {c.name: getattr(row, c.name) for c in SdbPm.__table__.columns}
        return PositionRecord.from_columns(columns)

    # Cross-identifiers

    def xid_owner(self, xid: str) -> Optional[str]:
        """sdbid an xid is bound to, if any."""
        with self.session() as session:
            return session.execute(
                select(Xid.sdbid).where(Xid.xid == xid)
            ).scalar_one_or_none()

    def xids_for(self, sdbid: str) -> List[str]:
        with self.session() as session:
            return list(session.execute(
                select(Xid.xid).where(Xid.sdbid == sdbid).order_by(Xid.id)
            ).scalars())

    def add_xid(self, sdbid: str, xid: str) -> bool:
        """Bind an xid to an sdbid. Returns False if the xid is already bound."""
        try:
            with self.session() as session:
                session.add(Xid(sdbid=sdbid, xid=xid))
        except IntegrityError:
            return False
        return True

    # Catalogue rows

    def write_catalogue_records(self, sdbid: str, catalogue: str,
                                records: Iterable[CatalogueRecord],
                                policy: WritePolicy = WritePolicy.REPLACE) -> int:
        """
        Write catalogue rows for one (sdbid, catalogue) pair.

        With WritePolicy.REPLACE existing rows for the pair are deleted in the
        same transaction; with WritePolicy.APPEND they are kept, so re-running
        can create duplicates.

        Returns:
            Number of rows written.
        """
        policy = WritePolicy(policy)
        written = 0
        with self.session() as session:
            if policy is WritePolicy.REPLACE:
                session.execute(
                    delete(CatalogueRow).where(CatalogueRow.sdbid == sdbid,
                                               CatalogueRow.catalogue == catalogue)
                )
            for record in records:
                session.add(CatalogueRow(
                    sdbid=sdbid,
                    catalogue=catalogue,
                    separation_arcsec=sanitize_for_json(record.separation_arcsec),
                    fields=sanitize_for_json(record.fields),
                ))
                written += 1
        return written

    def catalogue_records(self, sdbid: str, catalogue: Optional[str] = None) -> List[CatalogueRecord]:
        with self.session() as session:
            query = select(CatalogueRow).where(CatalogueRow.sdbid == sdbid)
            if catalogue is not None:
                query = query.where(CatalogueRow.catalogue == catalogue)
            rows = session.execute(query.order_by(CatalogueRow.id)).scalars().all()
            return [CatalogueRecord(sdbid=row.sdbid, catalogue=row.catalogue,
                                    fields=dict(row.fields or {}),
                                    separation_arcsec=row.separation_arcsec)
                    for row in rows]

    def count_rows(self) -> Dict[str, int]:
        """Row count of every table, keyed by table name."""
        counts = {}
        with self.session() as session:
            for table in (TargetClaim,) + TARGET_TABLES:
                counts[table.__tablename__] = session.execute(
                    select(func.count()).select_from(table)
                ).scalar_one()
        return counts
