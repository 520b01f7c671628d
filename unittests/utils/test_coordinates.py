from unittest import TestCase

import numpy as np

from sdb_lookup.utils.coordinates import (
    degrees_to_hms, is_coordinate_name, parse_coordinate_name,
    separations_and_bearings, ellipse_radius, propagate_position, prefilter_box
)


class TestCoordinateNames(TestCase):

    def test_is_coordinate_name(self):

        self.assertTrue(is_coordinate_name("J183656.34+384701.3"))
        self.assertTrue(is_coordinate_name("J18365633+3847012"))
        self.assertTrue(is_coordinate_name(" J000000.00-000000.0 "))
        self.assertFalse(is_coordinate_name("Vega"))
        self.assertFalse(is_coordinate_name("HD 172167"))
        self.assertFalse(is_coordinate_name("J1836+3847"))
        self.assertFalse(is_coordinate_name(None))

    def test_parse_coordinate_name(self):

        ra, dec = parse_coordinate_name("J183656.34+384701.3")

        self.assertAlmostEqual(ra, (18 + 36 / 60 + 56.34 / 3600) * 15, places=8)
        self.assertAlmostEqual(dec, 38 + 47 / 60 + 1.3 / 3600, places=8)

    def test_implied_decimal_point(self):

        np.testing.assert_array_almost_equal(parse_coordinate_name("J18365633+3847012"),
                                             parse_coordinate_name("J183656.33+384701.2"))

    def test_negative_declination(self):

        ra, dec = parse_coordinate_name("J064508.9-164258.0")

        self.assertLess(dec, 0)
        self.assertAlmostEqual(dec, -(16 + 42 / 60 + 58.0 / 3600), places=8)

    def test_not_a_coordinate_name(self):

        with self.assertRaises(ValueError):
            parse_coordinate_name("Vega")

    def test_degrees_to_hms(self):

        ra_hms, dec_dms = degrees_to_hms(279.234735, 38.783689)

        self.assertEqual(ra_hms, "18:36:56.34")
        self.assertEqual(dec_dms, "+38:47:01.3")


class TestSeparations(TestCase):

    def test_separations_and_bearings(self):

        step = 1.0 / 3600.0
        separations, bearings = separations_and_bearings(
            100.0, 0.0, [100.0, 100.0 + step, 100.0], [step, 0.0, -2 * step])

        np.testing.assert_array_almost_equal(separations, [1.0, 1.0, 2.0], decimal=6)
        np.testing.assert_array_almost_equal(bearings, [0.0, 90.0, 180.0], decimal=4)


class TestEllipseRadius(TestCase):

    def test_circle(self):

        np.testing.assert_array_almost_equal(ellipse_radius(3.0, 3.0, 0.0, [0.0, 45.0, 90.0, 200.0]),
                                             [3.0, 3.0, 3.0, 3.0])

    def test_axes(self):

        self.assertAlmostEqual(float(ellipse_radius(4.0, 2.0, 0.0, 0.0)), 4.0)
        self.assertAlmostEqual(float(ellipse_radius(4.0, 2.0, 0.0, 90.0)), 2.0)
        self.assertAlmostEqual(float(ellipse_radius(4.0, 2.0, 90.0, 90.0)), 4.0)
        self.assertAlmostEqual(float(ellipse_radius(4.0, 2.0, 0.0, 180.0)), 4.0)

    def test_degenerate(self):

        self.assertEqual(float(ellipse_radius(0.0, 0.0, 0.0, 30.0)), 0.0)


class TestPropagatePosition(TestCase):

    def test_declination_motion(self):

        ra, dec = propagate_position(10.0, 0.0, 0.0, 1000.0, 2000.0, 2010.0)

        self.assertAlmostEqual(ra, 10.0, places=9)
        self.assertAlmostEqual(dec, 10.0 / 3600.0, places=8)

    def test_right_ascension_motion(self):

        # pmRA includes cos(dec), so at dec 60 the RA shift is doubled
        ra, dec = propagate_position(10.0, 60.0, 1000.0, 0.0, 2000.0, 2010.0)

        self.assertAlmostEqual(ra, 10.0 + 20.0 / 3600.0, places=6)
        self.assertAlmostEqual(dec, 60.0, places=6)

    def test_backwards_in_time(self):

        ra, dec = propagate_position(10.0, 0.0, 0.0, 1000.0, 2000.0, 1983.5)

        self.assertAlmostEqual(dec, -16.5 / 3600.0, places=8)

    def test_ra_wraps(self):

        ra, dec = propagate_position(0.0, 0.0, -1000.0, 0.0, 2000.0, 2010.0)

        self.assertAlmostEqual(ra, 360.0 - 10.0 / 3600.0, places=6)

    def test_no_motion(self):

        self.assertEqual(propagate_position(12.3, -45.6, 0.0, 0.0, 2000.0, 1991.25), (12.3, -45.6))
        self.assertEqual(propagate_position(12.3, -45.6, None, None, 2000.0, 1991.25), (12.3, -45.6))
        self.assertEqual(propagate_position(12.3, -45.6, float('nan'), None, 2000.0, 1991.25), (12.3, -45.6))
        self.assertEqual(propagate_position(12.3, -45.6, 50.0, 50.0, 2000.0, 2000.0), (12.3, -45.6))


class TestPrefilterBox(TestCase):

    def test_simple(self):

        ranges, (dec_min, dec_max) = prefilter_box(180.0, 10.0, 5.0)

        self.assertEqual(ranges, [(175.0, 185.0)])
        self.assertEqual((dec_min, dec_max), (5.0, 15.0))

    def test_wrap_low(self):

        ranges, _ = prefilter_box(2.0, 0.0, 5.0)

        self.assertEqual(ranges, [(357.0, 360.0), (0.0, 7.0)])

    def test_wrap_high(self):

        ranges, _ = prefilter_box(358.0, 0.0, 5.0)

        self.assertEqual(ranges, [(353.0, 360.0), (0.0, 3.0)])

    def test_pole(self):

        ranges, (dec_min, dec_max) = prefilter_box(45.0, 88.0, 5.0)

        self.assertEqual(ranges, [(0.0, 360.0)])
        self.assertEqual((dec_min, dec_max), (83.0, 90.0))
