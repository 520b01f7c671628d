from unittest import TestCase

import pandas as pd
from sqlalchemy.exc import OperationalError

from sdb_lookup.clients.local_catalog_client import SPITZER_IRS_STARE
from sdb_lookup.core.catalogue_ingestor import (
    CatalogueIngestor, CatalogueSpec, FindMode, DEFAULT_CATALOGUES
)
from sdb_lookup.core.models import ConeMatch, Position, PositionRecord, WritePolicy
from sdb_lookup.exceptions import ServiceUnavailableError
from sdb_lookup.storage.datastore import Datastore

SDBID = "sdb-v1-183656.34+384701.3"
VEGA = Position(279.234735, 38.783689)

TWO_MASS = CatalogueSpec(name="2mass", epoch=1999.3, source="vizier", catalogue_id="II/246/out")
SPITZER_IRS = next(spec for spec in DEFAULT_CATALOGUES if spec.name == "spitzer_irs")


class FakeConeService:

    def __init__(self, matches=None, fail=False):
        self.matches = matches or {}
        self.fail = fail
        self.calls = []

    def search(self, catalogues, ra, dec, radius_arcsec, epochs=()):
        self.calls.append((list(catalogues), ra, dec, radius_arcsec))
        if self.fail:
            raise ServiceUnavailableError("service down")
        found = []
        for catalogue in catalogues:
            found.extend(self.matches.get(catalogue, []))
        return sorted(found, key=lambda m: m.separation_arcsec)


class FakeLocalCatalogues:

    def __init__(self, rows=None, fail=False):
        self.rows = rows if rows is not None else pd.DataFrame()
        self.fail = fail

    def box_search(self, table, ra, dec, half_width_deg=None):
        if self.fail:
            raise OperationalError("SELECT", {}, Exception("no such table"))
        return self.rows


def cone_match(separation, catalogue, **fields):
    return ConeMatch(separation_arcsec=separation, catalogue=catalogue,
                     ra_deg=VEGA.ra_deg, dec_deg=VEGA.dec_deg, fields=fields)


class TestCatalogueIngestor(TestCase):

    def setUp(self):

        self.store = Datastore("sqlite://")
        self.record = PositionRecord.replicated(VEGA).with_sdbid(SDBID)

    def tearDown(self):

        self.store.close()

    def test_best_cone_match(self):

        vizier = FakeConeService({'II/246/out': [cone_match(1.2, 'II/246/out', Jmag=0.5),
                                                 cone_match(0.1, 'II/246/out', Jmag=-0.18)]})
        ingestor = CatalogueIngestor(self.store, cone_services={'vizier': vizier}, catalogues=[TWO_MASS])

        written = ingestor.ingest(SDBID, self.record, TWO_MASS)

        self.assertEqual(written, 1)
        stored = self.store.catalogue_records(SDBID, "2mass")
        self.assertEqual(stored[0].fields, {'Jmag': -0.18})
        self.assertEqual(stored[0].separation_arcsec, 0.1)
        self.assertEqual(vizier.calls[0], (['II/246/out'], VEGA.ra_deg, VEGA.dec_deg, 2.0))

    def test_no_counterpart(self):

        ingestor = CatalogueIngestor(self.store, cone_services={'vizier': FakeConeService()},
                                     catalogues=[TWO_MASS])

        self.assertEqual(ingestor.ingest_all(SDBID, self.record), {'2mass': 0})
        self.assertEqual(self.store.catalogue_records(SDBID), [])

    def test_service_down_only_affects_its_catalogue(self):

        seip = CatalogueSpec(name="seip", epoch=2007.0, source="irsa", catalogue_id="slphotdr4")
        vizier = FakeConeService({'II/246/out': [cone_match(0.1, 'II/246/out', Jmag=-0.18)]})
        ingestor = CatalogueIngestor(self.store, catalogues=[seip, TWO_MASS],
                                     cone_services={'vizier': vizier, 'irsa': FakeConeService(fail=True)})

        with self.assertLogs('sdb_lookup.core.catalogue_ingestor', level='WARNING'):
            written = ingestor.ingest_all(SDBID, self.record)

        self.assertEqual(written, {'seip': 0, '2mass': 1})

    def test_uses_position_at_catalogue_epoch(self):

        record = PositionRecord(raj2000=10.0, dej2000=20.0, sdbid=SDBID, epoch_positions={
            2010.3: (10.1, 20.1), 2007.0: (10.07, 20.07), 1999.3: (9.99, 19.99),
            1991.25: (9.9, 19.9), 1983.5: (9.8, 19.8)})
        vizier = FakeConeService()
        ingestor = CatalogueIngestor(self.store, cone_services={'vizier': vizier}, catalogues=[TWO_MASS])

        ingestor.ingest(SDBID, record, TWO_MASS)

        self.assertEqual(vizier.calls[0][1:3], (9.99, 19.99))

    def test_spec_radius(self):

        wide = CatalogueSpec(name="wide", epoch=2010.3, source="vizier", catalogue_id="II/328/allwise",
                             radius_arcsec=6.0, find=FindMode.ALL)
        vizier = FakeConeService({'II/328/allwise': [cone_match(1.0, 'x'), cone_match(5.0, 'x')]})
        ingestor = CatalogueIngestor(self.store, cone_services={'vizier': vizier}, catalogues=[wide])

        self.assertEqual(ingestor.ingest(SDBID, self.record, wide), 2)
        self.assertEqual(vizier.calls[0][3], 6.0)

    def test_replace_is_idempotent(self):

        vizier = FakeConeService({'II/246/out': [cone_match(0.1, 'II/246/out', Jmag=-0.18)]})
        ingestor = CatalogueIngestor(self.store, cone_services={'vizier': vizier}, catalogues=[TWO_MASS])

        ingestor.ingest_all(SDBID, self.record)
        ingestor.ingest_all(SDBID, self.record)

        self.assertEqual(len(self.store.catalogue_records(SDBID, "2mass")), 1)

    def test_append_accumulates(self):

        vizier = FakeConeService({'II/246/out': [cone_match(0.1, 'II/246/out', Jmag=-0.18)]})
        ingestor = CatalogueIngestor(self.store, cone_services={'vizier': vizier}, catalogues=[TWO_MASS],
                                     write_policy=WritePolicy.APPEND)

        ingestor.ingest_all(SDBID, self.record)
        ingestor.ingest_all(SDBID, self.record)

        self.assertEqual(len(self.store.catalogue_records(SDBID, "2mass")), 2)

    def test_disabled_catalogue(self):

        vizier = FakeConeService()
        ingestor = CatalogueIngestor(self.store, cone_services={'vizier': vizier}, catalogues=[TWO_MASS],
                                     disabled_catalogues=["2mass"])

        self.assertEqual(ingestor.ingest_all(SDBID, self.record), {})
        self.assertEqual(vizier.calls, [])

    def test_missing_service(self):

        ingestor = CatalogueIngestor(self.store, catalogues=[TWO_MASS])

        with self.assertRaises(ValueError):
            ingestor.ingest(SDBID, self.record, TWO_MASS)

    def test_spitzer_observations(self):

        arcsec = 1.0 / 3600.0
        rows = pd.DataFrame({
            'name': ["Vega", "Vega", "elsewhere"],
            'ra': [VEGA.ra_deg] * 3,
            'dec_': [VEGA.dec_deg + 2 * arcsec, VEGA.dec_deg - 1 * arcsec, VEGA.dec_deg + 60 * arcsec],
            'aor_key': [1001, 1002, 1003],
            'aot': ["irsstare"] * 3,
        })
        ingestor = CatalogueIngestor(self.store, local_catalogues=FakeLocalCatalogues(rows),
                                     catalogues=[SPITZER_IRS])

        self.assertEqual(ingestor.ingest(SDBID, self.record, SPITZER_IRS), 2)

        stored = self.store.catalogue_records(SDBID, "spitzer_irs")
        self.assertEqual(sorted(r.fields['aor_key'] for r in stored), [1001, 1002])
        for r in stored:
            self.assertEqual(set(r.fields), {'name', 'ra', 'dec_', 'aor_key', 'instrument', 'bibcode', 'private'})
            self.assertEqual(r.fields['instrument'], "irsstare")
            self.assertEqual(r.fields['private'], 0)
        self.assertEqual(SPITZER_IRS.table, SPITZER_IRS_STARE)

    def test_local_table_error(self):

        ingestor = CatalogueIngestor(self.store, local_catalogues=FakeLocalCatalogues(fail=True),
                                     catalogues=[SPITZER_IRS])

        with self.assertLogs('sdb_lookup.core.catalogue_ingestor', level='ERROR'):
            self.assertEqual(ingestor.ingest(SDBID, self.record, SPITZER_IRS), 0)

    def test_without_local_catalogues(self):

        ingestor = CatalogueIngestor(self.store, catalogues=[SPITZER_IRS])

        self.assertEqual(ingestor.ingest(SDBID, self.record, SPITZER_IRS), 0)
