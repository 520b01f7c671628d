from unittest import TestCase

import pandas as pd
from sqlalchemy.exc import OperationalError

from sdb_lookup.core.models import ConflictStatus, CrossIdentifier, Position, PositionRecord
from sdb_lookup.core.xid_collector import CrossIdCollector
from sdb_lookup.exceptions import IdentifierConflictError, ServiceUnavailableError
from sdb_lookup.storage.datastore import Datastore

SDBID = "sdb-v1-183656.34+384701.3"
OTHER = "sdb-v1-064508.92-164258.0"
VEGA = Position(279.234735, 38.783689)


class FakeSimbad:

    def __init__(self, identifiers=None, fail=False):
        self._identifiers = identifiers or {}
        self.fail = fail

    def identifiers(self, name):
        if self.fail:
            raise ServiceUnavailableError("simbad down")
        return list(self._identifiers.get(name, []))


class FakeLocalCatalogues:

    def __init__(self, tables=None, fail=False):
        self.tables = tables or {}
        self.fail = fail
        self.searched = []

    def box_search(self, table, ra, dec, half_width_deg=None):
        self.searched.append(table.name)
        if self.fail:
            raise OperationalError("SELECT", {}, Exception("no such table"))
        return self.tables.get(table.name, pd.DataFrame())


def added(collection):
    return [identifier.xid for identifier in collection.added]


def iras_rows(iras_id, ra=VEGA.ra_deg, dec=VEGA.dec_deg):
    return pd.DataFrame({'IRAS_ID': [iras_id], '_RAJ2000': [ra], '_DEJ2000': [dec],
                         'Major': [10.0], 'Minor': [5.0], 'PosAng': [90.0]})


class TestCrossIdCollector(TestCase):

    def setUp(self):

        self.store = Datastore("sqlite://")
        self.record = PositionRecord.replicated(VEGA).with_sdbid(SDBID)

    def tearDown(self):

        self.store.close()

    def test_check_conflict(self):

        collector = CrossIdCollector(self.store)
        self.store.add_xid(SDBID, "Vega")

        self.assertEqual(collector.check_conflict(SDBID, "Vega"), ConflictStatus.SAME)
        self.assertEqual(collector.check_conflict(OTHER, "Vega"), ConflictStatus.CONFLICT)
        self.assertEqual(collector.check_conflict(SDBID, "HD 172167"), ConflictStatus.OK)

    def test_added_are_cross_identifiers(self):

        collection = CrossIdCollector(self.store).collect(SDBID, self.record, name="Vega")

        self.assertEqual(collection.added, [CrossIdentifier(SDBID, SDBID), CrossIdentifier(SDBID, "Vega")])

    def test_self_name_and_simbad_ids(self):

        simbad = FakeSimbad({'Vega': ["* alf Lyr", "HD 172167", "Vega", "HIP 91262"]})
        collector = CrossIdCollector(self.store, simbad=simbad)

        collection = collector.collect(SDBID, self.record, name="Vega")

        self.assertEqual(added(collection), [SDBID, "* alf Lyr", "HD 172167", "Vega", "HIP 91262"])
        self.assertEqual(collection.skipped, [])
        self.assertEqual(sorted(self.store.xids_for(SDBID)),
                         sorted([SDBID, "* alf Lyr", "HD 172167", "Vega", "HIP 91262"]))

    def test_collect_twice_adds_nothing(self):

        collector = CrossIdCollector(self.store, simbad=FakeSimbad({'Vega': ["HD 172167"]}))

        collector.collect(SDBID, self.record, name="Vega")
        again = collector.collect(SDBID, self.record, name="Vega")

        self.assertEqual(again.added, [])
        self.assertEqual(len(self.store.xids_for(SDBID)), 3)

    def test_alternate_bound_elsewhere_is_skipped(self):

        self.store.add_xid(OTHER, "HD 172167")
        collector = CrossIdCollector(self.store, simbad=FakeSimbad({'Vega': ["HD 172167", "HIP 91262"]}))

        with self.assertLogs('sdb_lookup.core.xid_collector', level='WARNING'):
            collection = collector.collect(SDBID, self.record, name="Vega")

        self.assertEqual(collection.skipped, ["HD 172167"])
        self.assertIn("HIP 91262", added(collection))
        self.assertEqual(self.store.xid_owner("HD 172167"), OTHER)

    def test_name_bound_elsewhere_raises(self):

        self.store.add_xid(OTHER, "Vega")
        collector = CrossIdCollector(self.store)

        with self.assertRaises(IdentifierConflictError) as context:
            collector.collect(SDBID, self.record, name="Vega")

        self.assertEqual(context.exception.xid, "Vega")
        self.assertEqual(context.exception.existing_sdbid, OTHER)
        self.assertEqual(self.store.xid_owner("Vega"), OTHER)

    def test_simbad_down_is_not_fatal(self):

        collector = CrossIdCollector(self.store, simbad=FakeSimbad(fail=True))

        collection = collector.collect(SDBID, self.record, name="Vega")

        self.assertEqual(added(collection), [SDBID, "Vega"])

    def test_iras_xids_from_local_tables(self):

        local = FakeLocalCatalogues({
            'iras_fsc': iras_rows("IRAS F18352+3844"),
            'iras_psc': iras_rows("IRAS 18352+3844"),
        })
        collector = CrossIdCollector(self.store, local_catalogues=local)

        collection = collector.collect(SDBID, self.record)

        self.assertEqual(added(collection), [SDBID, "IRAS F18352+3844", "IRAS 18352+3844"])
        self.assertEqual(local.searched, ['iras_fsc', 'iras_psc'])

    def test_existing_iras_xid_skips_search(self):

        local = FakeLocalCatalogues({'iras_psc': iras_rows("IRAS 18352+3844")})
        collector = CrossIdCollector(self.store, simbad=FakeSimbad({'Vega': ["IRAS 18352+3844"]}),
                                     local_catalogues=local)

        collector.collect(SDBID, self.record, name="Vega")

        self.assertEqual(local.searched, ['iras_fsc'])

    def test_iras_entry_too_far(self):

        local = FakeLocalCatalogues({'iras_psc': iras_rows("IRAS 18352+3844", dec=VEGA.dec_deg + 0.1)})
        collector = CrossIdCollector(self.store, local_catalogues=local)

        collection = collector.collect(SDBID, self.record)

        self.assertEqual(added(collection), [SDBID])

    def test_local_table_error_is_logged(self):

        collector = CrossIdCollector(self.store, local_catalogues=FakeLocalCatalogues(fail=True))

        with self.assertLogs('sdb_lookup.core.xid_collector', level='ERROR'):
            collection = collector.collect(SDBID, self.record)

        self.assertEqual(added(collection), [SDBID])
