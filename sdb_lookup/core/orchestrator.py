"""
orchestrator.py - Adds targets to the sdb

Processing a target runs these steps in order:

1. resolve the name and/or coordinates to an epoch-2000.0 position and the
   positions at the catalogue epochs
2. derive the sdbid from the 2000.0 position
3. stop if the sdbid is already complete
4. stop if the target name is already bound to a different sdbid
5. claim the sdbid (stop if another run holds it)
6. store the position record
7. collect cross-identifiers
8. store SIMBAD basic info
9. ingest every catalogue
10. mark the sdbid complete

Nothing is written before step 5, so rejected targets leave no trace.
"""

import logging
from typing import Iterable, List, Optional, Tuple, Union

from tqdm import tqdm

from sdb_lookup.clients import (
    CdsNameResolver, IrsaGatorClient, LocalCatalogueClient, SimbadClient, VizierClient
)
from sdb_lookup.config import SdbConfig
from sdb_lookup.core.catalogue_ingestor import CatalogueIngestor
from sdb_lookup.core.identifier import IdentifierDeriver
from sdb_lookup.core.models import (
    CatalogueRecord, ClaimStatus, ConflictStatus, ProcessResult, ProcessStatus, WritePolicy
)
from sdb_lookup.core.position_resolver import PositionResolver
from sdb_lookup.core.target_registry import TargetRegistry
from sdb_lookup.core.xid_collector import CrossIdCollector
from sdb_lookup.exceptions import (
    IdentifierConflictError, InvalidTargetError, ResolutionError, ServiceUnavailableError
)
from sdb_lookup.storage.datastore import Datastore

# Set up logging
logger = logging.getLogger(__name__)

# A target is a name, an (ra, dec) pair or (name, ra, dec)
Target = Union[str, Tuple[float, float], Tuple[Optional[str], Optional[float], Optional[float]]]

SIMBAD_CATALOGUE = "simbad"


class Orchestrator:
    """
    Runs the full sequence of steps for each target.
    """

    def __init__(self, datastore, resolver: PositionResolver, deriver: IdentifierDeriver,
                 registry: TargetRegistry, collector: CrossIdCollector, ingestor: CatalogueIngestor,
                 simbad=None, write_policy: WritePolicy = WritePolicy.REPLACE):
        """
        Initialize the orchestrator.

        Args:
            datastore: Datastore for the position record and SIMBAD info.
            resolver: PositionResolver.
            deriver: IdentifierDeriver.
            registry: TargetRegistry.
            collector: CrossIdCollector.
            ingestor: CatalogueIngestor.
            simbad: Service with ``basic_info(name)``; None skips SIMBAD info.
            write_policy: Write policy for the SIMBAD info rows.
        """
        self.datastore = datastore
        self.resolver = resolver
        self.deriver = deriver
        self.registry = registry
        self.collector = collector
        self.ingestor = ingestor
        self.simbad = simbad
        self.write_policy = WritePolicy(write_policy)

    def process_target(self, name: Optional[str] = None, ra: Optional[float] = None,
                       dec: Optional[float] = None) -> ProcessResult:
        """
        Add one target.

        Args:
            name: Target name.
            ra: Right ascension in degrees at epoch 2000.0.
            dec: Declination in degrees at epoch 2000.0.

        Returns:
            ProcessResult describing what happened.

        Raises:
            InvalidTargetError: Neither a name nor a coordinate pair was given.
        """
        try:
            resolution = self.resolver.resolve(name=name, ra=ra, dec=dec)
        except ResolutionError as e:
            logger.error(f"Could not resolve target: {e}")
            return ProcessResult(status=ProcessStatus.RESOLUTION_FAILED, name=name, message=str(e))

        name = resolution.name
        sdbid = self.deriver.derive(resolution.position)
        logger.info(f"Source id is: {sdbid}")

        if self.registry.exists(sdbid):
            logger.info(f"Stopping here, have {sdbid} already")
            return ProcessResult(status=ProcessStatus.ALREADY_EXISTS, sdbid=sdbid, name=name,
                                 message="already processed", xids=self.datastore.xids_for(sdbid))

        if name and self.collector.check_conflict(sdbid, name) is ConflictStatus.CONFLICT:
            owner = self.datastore.xid_owner(name)
            message = f"Found xid for {name} different to sdbid {sdbid}: {owner}"
            logger.error(message)
            return ProcessResult(status=ProcessStatus.CONFLICT_DETECTED, sdbid=sdbid, name=name,
                                 message=message)

        if self.registry.reserve(sdbid) is ClaimStatus.ALREADY_CLAIMED:
            return ProcessResult(status=ProcessStatus.ALREADY_EXISTS, sdbid=sdbid, name=name,
                                 message="claimed by another run")

        logger.info("New target, going ahead")
        record = resolution.record.with_sdbid(sdbid)
        self.datastore.insert_position_record(record)

        try:
            xids = self.collector.collect(sdbid, record, name)
        except IdentifierConflictError as e:
            logger.error(f"Conflict while collecting xids: {e}")
            self.registry.release(sdbid)
            return ProcessResult(status=ProcessStatus.CONFLICT_DETECTED, sdbid=sdbid, name=name,
                                 message=str(e))

        catalogue_rows = {}
        if name:
            catalogue_rows[SIMBAD_CATALOGUE] = self._store_simbad_info(sdbid, name)
        catalogue_rows.update(self.ingestor.ingest_all(sdbid, record))

        if not self.registry.complete(sdbid):
            # a later run took the claim over and redoes this target
            return ProcessResult(status=ProcessStatus.ALREADY_EXISTS, sdbid=sdbid, name=name,
                                 message="claim taken over by another run",
                                 skipped_xids=xids.skipped, catalogue_rows=catalogue_rows)
        return ProcessResult(status=ProcessStatus.CREATED, sdbid=sdbid, name=name,
                             message="created", xids=self.datastore.xids_for(sdbid),
                             skipped_xids=xids.skipped, catalogue_rows=catalogue_rows)

    def process_targets(self, targets: Iterable[Target], progress: bool = True) -> List[ProcessResult]:
        """
        Add many targets. A failure for one target never stops the others.

        Args:
            targets: Names, (ra, dec) pairs or (name, ra, dec) triples.
            progress: Show a progress bar.

        Returns:
            One ProcessResult per target, in input order.
        """
        targets = list(targets)
        results = []
        for target in tqdm(targets, desc="Targets", unit="target", disable=not progress):
            name = target if isinstance(target, str) else None
            try:
                name, ra, dec = self._unpack(target)
                result = self.process_target(name=name, ra=ra, dec=dec)
            except (InvalidTargetError, ServiceUnavailableError) as e:
                logger.error(f"Error processing {target}: {e}")
                result = ProcessResult(status=ProcessStatus.RESOLUTION_FAILED, name=name, message=str(e))
            except Exception as e:
                logger.error(f"Unexpected error processing {target}: {e}")
                logger.exception("Stack trace:")
                result = ProcessResult(status=ProcessStatus.RESOLUTION_FAILED, name=name,
                                       message=f"unexpected error: {e}")
            results.append(result)
        return results

    @staticmethod
    def _unpack(target: Target) -> Tuple[Optional[str], Optional[float], Optional[float]]:
        if isinstance(target, str):
            return target, None, None
        if len(target) == 2:
            return None, target[0], target[1]
        if len(target) == 3:
            return target[0], target[1], target[2]
        raise InvalidTargetError(f"Cannot read target {target!r}")

    def _store_simbad_info(self, sdbid: str, name: str) -> int:
        if self.simbad is None:
            return 0
        logger.info(f"Using id {name} to find simbad info")
        try:
            info = self.simbad.basic_info(name)
        except ServiceUnavailableError as e:
            logger.warning(f"SIMBAD basic info unavailable for {name}: {e}")
            return 0
        if not info:
            logger.info(f"No SIMBAD info for {name}")
            return 0
        return self.datastore.write_catalogue_records(
            sdbid, SIMBAD_CATALOGUE, [CatalogueRecord(sdbid=sdbid, catalogue=SIMBAD_CATALOGUE, fields=info)],
            self.write_policy)

    def close(self) -> None:
        self.datastore.close()


def build_orchestrator(config: Optional[SdbConfig] = None, datastore=None) -> Orchestrator:
    """
    Wire up an Orchestrator with the live services described by a configuration.

    Args:
        config: Configuration, defaults if None.
        datastore: Datastore to use instead of one opened at config.database_url.

    Returns:
        Orchestrator ready to process targets.
    """
    config = config or SdbConfig()
    service_args = dict(timeout=config.timeout, max_retries=config.max_retries,
                        backoff_seconds=config.backoff_seconds)

    datastore = datastore or Datastore(config.database_url)
    simbad = SimbadClient(**service_args)
    vizier = VizierClient(server=config.vizier_server, **service_args)
    irsa = IrsaGatorClient(**service_args)
    local = LocalCatalogueClient(config.photometry_url, prefilter_box_deg=config.prefilter_box_deg)

    resolver = PositionResolver(
        CdsNameResolver(simbad=simbad, **service_args),
        vizier,
        pm_catalogues=config.pm_catalogues,
        match_radius_arcsec=config.match_radius_arcsec,
    )
    collector = CrossIdCollector(datastore, simbad=simbad, local_catalogues=local)
    ingestor = CatalogueIngestor(
        datastore,
        cone_services={'vizier': vizier, 'irsa': irsa},
        local_catalogues=local,
        match_radius_arcsec=config.match_radius_arcsec,
        write_policy=WritePolicy(config.write_policy),
        disabled_catalogues=config.disabled_catalogues,
    )
    logger.info(f"Using default match radius of {config.match_radius_arcsec} arcsec "
                f"and prefix {config.sdb_prefix} for sdb ids")

    return Orchestrator(
        datastore=datastore,
        resolver=resolver,
        deriver=IdentifierDeriver(config.sdb_prefix),
        registry=TargetRegistry(datastore, stale_claim_seconds=config.stale_claim_seconds),
        collector=collector,
        ingestor=ingestor,
        simbad=simbad,
        write_policy=WritePolicy(config.write_policy),
    )
