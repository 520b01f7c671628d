"""
target_registry.py - Claims on sdbids

A target is processed at most once. Before anything is written for an sdbid the
registry claims it with a single insert into a table with a unique sdbid column,
so two runs racing on the same target cannot both proceed. The claim is marked
complete once every catalogue has been ingested; only completed claims count as
existing targets.

A claim that never completes (the run crashed) goes stale after a while and can
be taken over by a later run, which first deletes the partial rows.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from sdb_lookup.config import DEFAULT_STALE_CLAIM_SECONDS
from sdb_lookup.core.models import ClaimStatus

# Set up logging
logger = logging.getLogger(__name__)


class TargetRegistry:
    """
    Registry of claimed and completed sdbids, backed by a Datastore.
    """

    def __init__(self, datastore, stale_claim_seconds: int = DEFAULT_STALE_CLAIM_SECONDS,
                 clock: Callable[[], datetime] = datetime.utcnow):
        """
        Initialize the registry.

        Args:
            datastore: Datastore holding the claim table.
            stale_claim_seconds: Age after which an incomplete claim may be taken over.
            clock: Returns the current UTC time.
        """
        self.datastore = datastore
        self.stale_after = timedelta(seconds=stale_claim_seconds)
        self.clock = clock
        self._tokens = {}

    def exists(self, sdbid: str) -> bool:
        """True if the sdbid has been fully processed."""
        claim = self.datastore.get_claim(sdbid)
        return claim is not None and claim.completed_at is not None

    def reserve(self, sdbid: str) -> ClaimStatus:
        """
        Claim an sdbid for processing.

        Returns:
            ClaimStatus.CLAIMED if this caller now owns the sdbid (any partial rows
            from a stale claim have been deleted), ClaimStatus.ALREADY_CLAIMED if
            it is complete or being processed by someone else.
        """
        token = uuid.uuid4().hex
        now = self.clock()

        if self.datastore.insert_claim(sdbid, token, now):
            # nothing should be there, but rows may predate the claim table
            self.datastore.purge(sdbid)
            self._tokens[sdbid] = token
            logger.info(f"Claimed {sdbid}")
            return ClaimStatus.CLAIMED

        claim = self.datastore.get_claim(sdbid)
        if claim is None:
            # released between our insert and read, try once more
            return self.reserve(sdbid)

        if claim.completed_at is not None:
            logger.info(f"{sdbid} already complete")
            return ClaimStatus.ALREADY_CLAIMED

        age = now - claim.claimed_at
        if age < self.stale_after:
            logger.info(f"{sdbid} is being processed by another run (claimed {age} ago)")
            return ClaimStatus.ALREADY_CLAIMED

        if not self.datastore.take_over_claim(sdbid, claim.claim_token, token, now):
            logger.info(f"Lost race to take over stale claim on {sdbid}")
            return ClaimStatus.ALREADY_CLAIMED

        logger.warning(f"Took over stale claim on {sdbid} (claimed {age} ago), deleting partial rows")
        self.datastore.purge(sdbid)
        self._tokens[sdbid] = token
        return ClaimStatus.CLAIMED

    def complete(self, sdbid: str) -> bool:
        """
        Mark a claimed sdbid as fully processed.

        Returns:
            False if the claim was not held by this registry or has been taken over.
        """
        token: Optional[str] = self._tokens.pop(sdbid, None)
        if token is None:
            logger.error(f"Cannot complete {sdbid}, not claimed by this run")
            return False
        if not self.datastore.mark_complete(sdbid, token, self.clock()):
            logger.error(f"Claim on {sdbid} was taken over before completion")
            return False
        logger.info(f"Completed {sdbid}")
        return True

    def release(self, sdbid: str) -> bool:
        """
        Give up a claim held by this registry, deleting every row written under it.

        Returns:
            False if the claim was not held by this registry or has been taken over.
        """
        token: Optional[str] = self._tokens.pop(sdbid, None)
        if token is None:
            logger.error(f"Cannot release {sdbid}, not claimed by this run")
            return False
        claim = self.datastore.get_claim(sdbid)
        if claim is None or claim.claim_token != token:
            logger.error(f"Claim on {sdbid} was taken over before release")
            return False
        # rows go first, so a run claiming the sdbid afterwards starts clean
        self.datastore.purge(sdbid)
        if not self.datastore.release_claim(sdbid, token):
            logger.error(f"Claim on {sdbid} was taken over during release")
            return False
        logger.info(f"Released {sdbid}")
        return True
