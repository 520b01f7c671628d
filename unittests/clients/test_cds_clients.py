import io
from unittest import TestCase
from unittest.mock import Mock

import requests
from astropy.table import Table

from sdb_lookup.clients.name_resolver import CdsNameResolver
from sdb_lookup.clients.sesame_client import SesameClient
from sdb_lookup.clients.simbad_client import SimbadClient, adql_string
from sdb_lookup.exceptions import ServiceUnavailableError

SESAME_VEGA = """<?xml version="1.0" encoding="UTF-8"?>
<Sesame xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">
<Target option="SNV">
  <name>Vega</name>
  <INFO>from cache</INFO>
  <Resolver name="S=Simbad (via url):    1">
    <INFO>*** Not found</INFO>
  </Resolver>
  <Resolver name="V=VizieR (local):    1">
    <otype>PM*</otype>
    <jpos>18:36:56.33 +38:47:01.2</jpos>
    <jradeg>279.23473479</jradeg>
    <jdedeg>+38.78368896</jdedeg>
    <oname>* alf Lyr</oname>
  </Resolver>
</Target>
</Sesame>
"""

SESAME_NOTHING = """<?xml version="1.0" encoding="UTF-8"?>
<Sesame><Target option="SNV"><name>No Such Star</name>
<Resolver name="S=Simbad"><INFO>*** Not found</INFO></Resolver></Target></Sesame>
"""


def votable_bytes(table):
    buffer = io.BytesIO()
    table.write(buffer, format='votable')
    return buffer.getvalue()


def http_response(content=b'', text='', status_code=200):
    response = Mock()
    response.content = content
    response.text = text
    response.status_code = status_code
    if status_code >= 400:
        error = requests.HTTPError(f"{status_code} error")
        error.response = response
        response.raise_for_status.side_effect = error
    return response


class TestSesameClient(TestCase):

    def test_parse_first_position(self):

        self.assertEqual(SesameClient.parse_response(SESAME_VEGA), (279.23473479, 38.78368896))

    def test_parse_nothing_found(self):

        self.assertIsNone(SesameClient.parse_response(SESAME_NOTHING))

    def test_parse_garbage(self):

        self.assertIsNone(SesameClient.parse_response("<html>Service down"))

    def test_resolve_quotes_name(self):

        client = SesameClient()
        client.session = Mock()
        client.session.get.return_value = http_response(text=SESAME_VEGA)

        self.assertEqual(client.resolve("HD 172167"), (279.23473479, 38.78368896))
        self.assertTrue(client.session.get.call_args[0][0].endswith("/SNV?HD%20172167"))

    def test_unreachable(self):

        client = SesameClient(max_retries=1, backoff_seconds=0.0)
        client.session = Mock()
        client.session.get.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(ServiceUnavailableError):
            client.resolve("Vega")
        self.assertEqual(client.session.get.call_count, 2)


class TestSimbadClient(TestCase):

    def setUp(self):

        self.client = SimbadClient(max_retries=0)
        self.client.session = Mock()

    def reply(self, table):

        self.client.session.get.return_value = http_response(content=votable_bytes(table))

    def test_adql_string(self):

        self.assertEqual(adql_string("Barnard's Star"), "'Barnard''s Star'")

    def test_identifiers(self):

        self.reply(Table({'xid': ["* alf Lyr", "HD 172167 ", "Vega"]}))

        self.assertEqual(self.client.identifiers("Vega"), ["* alf Lyr", "HD 172167", "Vega"])
        query = self.client.session.get.call_args[1]['params']['query']
        self.assertIn("WHERE id1.id = 'Vega'", query)

    def test_nearest_name(self):

        self.reply(Table({'main_id': ["* alf Lyr"], 'dist': [0.0001]}))

        self.assertEqual(self.client.nearest_name(279.2347, 38.7837, 2.0), "* alf Lyr")

    def test_nearest_name_nothing_there(self):

        self.reply(Table({'main_id': [""], 'dist': [0.0]})[:0])

        self.assertIsNone(self.client.nearest_name(10.0, -20.0, 2.0))

    def test_basic_info(self):

        self.reply(Table({'main_id': ["* alf Lyr"], 'sp_type': ["A0Va"], 'plx_value': [130.23]}))

        info = self.client.basic_info("Vega")

        self.assertEqual(info, {'main_id': "* alf Lyr", 'sp_type': "A0Va", 'plx_value': 130.23})

    def test_server_error_is_unavailable(self):

        self.client.session.get.return_value = http_response(status_code=503)

        with self.assertRaises(ServiceUnavailableError):
            self.client.identifiers("Vega")

    def test_client_error_propagates(self):

        self.client.session.get.return_value = http_response(status_code=400)

        with self.assertRaises(requests.HTTPError):
            self.client.identifiers("Vega")


class TestCdsNameResolver(TestCase):

    def test_delegates(self):

        sesame = Mock()
        sesame.resolve.return_value = (1.0, 2.0)
        simbad = Mock()
        simbad.nearest_name.return_value = "* alf Lyr"
        resolver = CdsNameResolver(sesame=sesame, simbad=simbad)

        self.assertEqual(resolver.resolve_by_name("Vega"), (1.0, 2.0))
        self.assertEqual(resolver.resolve_by_position(279.2, 38.8, 2.0), "* alf Lyr")
        simbad.nearest_name.assert_called_once_with(279.2, 38.8, 2.0)
