import re
from unittest import TestCase

from sdb_lookup.core.identifier import (
    IdentifierDeriver, derive_sdbid, format_ra, format_dec, RA_PRECISION_DEG, DEC_PRECISION_DEG
)
from sdb_lookup.core.models import Position

SDBID_PATTERN = re.compile(r'^sdb-v1-\d{6}\.\d{2}[+-]\d{6}\.\d$')


class TestFormat(TestCase):

    def test_format_ra(self):

        self.assertEqual(format_ra(0.0), "000000.00")
        self.assertEqual(format_ra(279.234735), "183656.34")
        self.assertEqual(format_ra(15.0), "010000.00")

    def test_ra_carries_into_minutes(self):

        # 00h00m59.996s rounds up to 00h01m00.00s
        self.assertEqual(format_ra(59.996 / 240.0), "000100.00")

    def test_ra_wraps_at_24h(self):

        self.assertEqual(format_ra(359.9999999), "000000.00")
        self.assertEqual(format_ra(360.0), "000000.00")

    def test_format_dec(self):

        self.assertEqual(format_dec(38.783689), "+384701.3")
        self.assertEqual(format_dec(-16.716116), "-164258.0")
        self.assertEqual(format_dec(90.0), "+900000.0")
        self.assertEqual(format_dec(-90.0), "-900000.0")

    def test_dec_carries_into_degrees(self):

        # 10d59m59.96s rounds up to 11d00m00.0s
        self.assertEqual(format_dec(10.0 + 59.0 / 60.0 + 59.96 / 3600.0), "+110000.0")

    def test_dec_sign_of_zero(self):

        self.assertEqual(format_dec(-0.00001), "+000000.0")
        self.assertEqual(format_dec(-0.00002), "-000000.1")

    def test_dec_out_of_range(self):

        with self.assertRaises(ValueError):
            format_dec(90.5)


class TestDerive(TestCase):

    def test_vega(self):

        sdbid = derive_sdbid(279.234735, 38.783689)

        self.assertEqual(sdbid, "sdb-v1-183656.34+384701.3")
        self.assertRegex(sdbid, SDBID_PATTERN)

    def test_deterministic(self):

        deriver = IdentifierDeriver()
        position = Position(83.822083, -5.391111)

        ids = {deriver.derive(position) for _ in range(10)}

        self.assertEqual(len(ids), 1)
        self.assertRegex(ids.pop(), SDBID_PATTERN)

    def test_differences_below_precision(self):

        # well inside one rounding step the identifier does not change
        ra, dec = 10.684708, 41.26875
        base = derive_sdbid(ra, dec)

        self.assertEqual(derive_sdbid(ra + RA_PRECISION_DEG / 100, dec), base)
        self.assertEqual(derive_sdbid(ra, dec + DEC_PRECISION_DEG / 100), base)

    def test_differences_above_precision(self):

        ra, dec = 10.684708, 41.26875
        base = derive_sdbid(ra, dec)

        self.assertNotEqual(derive_sdbid(ra + 2 * RA_PRECISION_DEG, dec), base)
        self.assertNotEqual(derive_sdbid(ra, dec + 2 * DEC_PRECISION_DEG), base)

    def test_prefix(self):

        deriver = IdentifierDeriver(prefix="sdb-v2-")

        self.assertTrue(deriver.derive(Position(279.234735, 38.783689)).startswith("sdb-v2-183656.34"))

    def test_requires_epoch_2000(self):

        with self.assertRaises(ValueError):
            IdentifierDeriver().derive(Position(279.234735, 38.783689, epoch=2010.3))
