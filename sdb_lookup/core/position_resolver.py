"""
position_resolver.py - Resolves a target name and/or coordinates to a position

The resolver settles on one epoch-2000.0 position for a target and then looks
for the target in the proper-motion catalogues. The closest proper-motion entry
supplies both the final 2000.0 position and the positions at the epochs of the
downstream catalogues; without one, the 2000.0 position is used at every epoch.
"""

import logging
from typing import Optional, Sequence, Tuple

from sdb_lookup.config import DEFAULT_MATCH_RADIUS_ARCSEC, DEFAULT_PM_CATALOGUES
from sdb_lookup.core.models import (
    Position, PositionRecord, PositionSource, Resolution, PROPAGATED_EPOCHS
)
from sdb_lookup.exceptions import InvalidTargetError, ResolutionError, ServiceUnavailableError
from sdb_lookup.utils.coordinates import (
    degrees_to_hms, is_coordinate_name, parse_coordinate_name
)

# Set up logging
logger = logging.getLogger(__name__)


class PositionResolver:
    """
    Turns a name, a coordinate pair or both into a Resolution.

    The name resolver must provide ``resolve_by_name(name)`` and
    ``resolve_by_position(ra, dec, radius_arcsec)``; the cone search must
    provide ``search(catalogues, ra, dec, radius_arcsec, epochs)``.
    """

    def __init__(self, name_resolver, cone_search,
                 pm_catalogues: Sequence[str] = DEFAULT_PM_CATALOGUES,
                 match_radius_arcsec: float = DEFAULT_MATCH_RADIUS_ARCSEC):
        """
        Initialize the resolver.

        Args:
            name_resolver: Forward and reverse name resolution service.
            cone_search: Cone search service used for the proper-motion catalogues.
            pm_catalogues: Proper-motion catalogues, searched together.
            match_radius_arcsec: Radius for reverse resolution and the proper-motion search.
        """
        self.name_resolver = name_resolver
        self.cone_search = cone_search
        self.pm_catalogues = list(pm_catalogues)
        self.match_radius_arcsec = match_radius_arcsec

    def resolve(self, name: Optional[str] = None, ra: Optional[float] = None,
                dec: Optional[float] = None) -> Resolution:
        """
        Resolve a target.

        Args:
            name: Target name. Coordinate-shaped names (J183656.34+384701.3) are
                  parsed rather than looked up.
            ra: Right ascension in decimal degrees at epoch 2000.0.
            dec: Declination in decimal degrees at epoch 2000.0.

        Returns:
            Resolution with the final Position, its PositionRecord and the name
            (given, or found by reverse resolution; may be None).

        Raises:
            InvalidTargetError: Neither a name nor a complete coordinate pair.
            ResolutionError: The name cannot be resolved and no coordinates were given.
        """
        name = name.strip() if name else None
        coords = self._validate(name, ra, dec)

        position, name = self._initial_position(name, coords)
        ra_hms, dec_dms = degrees_to_hms(position.ra_deg, position.dec_deg)
        logger.info(f"Final set of coords: {ra_hms} {dec_dms} ({position.source_priority.name})")

        position, record = self._proper_motion_record(position)
        return Resolution(position=position, record=record, name=name)

    def _validate(self, name: Optional[str], ra, dec) -> Optional[Tuple[float, float]]:
        if (ra is None) != (dec is None):
            raise InvalidTargetError("Both ra and dec are needed when giving coordinates")
        if not name and ra is None:
            raise InvalidTargetError("Need a name or coordinates")
        if ra is None:
            return None

        try:
            ra, dec = float(ra), float(dec)
        except (TypeError, ValueError):
            raise InvalidTargetError(f"Coordinates are not numbers: {ra}, {dec}")
        if not 0.0 <= ra < 360.0 or not -90.0 <= dec <= 90.0:
            raise InvalidTargetError(f"Coordinates out of range: {ra}, {dec}")
        return ra, dec

    def _initial_position(self, name: Optional[str],
                          coords: Optional[Tuple[float, float]]) -> Tuple[Position, Optional[str]]:
        """Epoch-2000.0 position before the proper-motion search, and the target name."""
        radius = self.match_radius_arcsec

        if not name:
            name = self._reverse_resolve(*coords)

        if name and is_coordinate_name(name):
            ra, dec = parse_coordinate_name(name)
            logger.info(f"Using coordinates from name {name}")
            return Position(ra, dec, search_radius_arcsec=radius,
                            source_priority=PositionSource.COORDINATE_NAME), name

        if name:
            found = self._resolve_name(name, fatal=coords is None)
            if found is not None:
                return Position(found[0], found[1], search_radius_arcsec=radius,
                                source_priority=PositionSource.NAME_RESOLVER), name
            logger.warning(f"Could not resolve '{name}', using given coords")

        logger.info(f"Using given coords {coords[0]},{coords[1]}")
        return Position(coords[0], coords[1], search_radius_arcsec=radius), name

    def _resolve_name(self, name: str, fatal: bool) -> Optional[Tuple[float, float]]:
        try:
            found = self.name_resolver.resolve_by_name(name)
        except ServiceUnavailableError as e:
            if fatal:
                raise ResolutionError(f"Name resolver unavailable for '{name}': {e}") from e
            logger.warning(f"Name resolver unavailable for '{name}': {e}")
            return None

        if found is None and fatal:
            raise ResolutionError(f"Could not resolve '{name}' and no coordinates given")
        return found

    def _reverse_resolve(self, ra: float, dec: float) -> Optional[str]:
        try:
            return self.name_resolver.resolve_by_position(ra, dec, self.match_radius_arcsec)
        except ServiceUnavailableError as e:
            logger.warning(f"Reverse name resolution unavailable at {ra},{dec}: {e}")
            return None

    def _proper_motion_record(self, position: Position) -> Tuple[Position, PositionRecord]:
        """Refine the position from the closest proper-motion entry, if any."""
        logger.info("Looking in proper motion catalogues")
        try:
            matches = self.cone_search.search(self.pm_catalogues, position.ra_deg, position.dec_deg,
                                              self.match_radius_arcsec, epochs=PROPAGATED_EPOCHS)
        except ServiceUnavailableError as e:
            logger.warning(f"Proper motion search failed: {e}")
            matches = []

        if not matches:
            logger.warning("No pm source found, assuming zero proper motion for all epochs")
            return position, PositionRecord.replicated(position)

        best = min(matches, key=lambda m: m.separation_arcsec)
        logger.info(f"Updated epoch 2000.0 coord from {best.catalogue} "
                    f"({best.separation_arcsec:.3f} arcsec away)")

        refined = Position(best.ra_deg, best.dec_deg,
                           search_radius_arcsec=position.search_radius_arcsec,
                           source_priority=PositionSource.PM_CATALOGUE)
        epoch_positions = {epoch: best.epoch_positions.get(epoch, (best.ra_deg, best.dec_deg))
                           for epoch in PROPAGATED_EPOCHS}
        record = PositionRecord(raj2000=best.ra_deg, dej2000=best.dec_deg,
                                epoch_positions=epoch_positions, pm_source=best.catalogue)
        return refined, record
