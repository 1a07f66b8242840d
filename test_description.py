import unittest
import xml.etree.ElementTree as ET
from aiohttp import web
from aiohttp.test_utils import TestServer
from description import (
    UNRESOLVED, Resolved, ServiceDescriptor, fetch_description, parse_description
)
from exceptions import HTTPStatusError

def service(service_type, control_url):
    return f"""
      <service>
        <serviceType>{service_type}</serviceType>
        <serviceId>urn:upnp-org:serviceId:{control_url.rsplit('/', 1)[-1]}</serviceId>
        <controlURL>{control_url}</controlURL>
        <eventSubURL>/evt{control_url}</eventSubURL>
        <SCPDURL>/scpd{control_url}.xml</SCPDURL>
      </service>"""

ROOT_DESC = f"""<?xml version="1.0"?>
<root xmlns="urn:schemas-upnp-org:device-1-0">
  <specVersion><major>1</major><minor>0</minor></specVersion>
  <URLBase>http://10.0.0.1:1234/</URLBase>
  <device>
    <deviceType>urn:schemas-upnp-org:device:InternetGatewayDevice:1</deviceType>
    <serviceList>{service("urn:schemas-microsoft-com:service:OSInfo:1", "/ctl/OSInfo")}
    </serviceList>
    <deviceList>
      <device>
        <deviceType>urn:schemas-upnp-org:device:WANConnectionDevice:1</deviceType>
        <serviceList>{service("urn:schemas-upnp-org:service:WANCommonInterfaceConfig:1", "/ctl/CmnIfCfg")}{service("urn:schemas-upnp-org:service:WANIPConnection:1", "/ctl/IPConn")}{service("urn:schemas-upnp-org:service:WANPPPConnection:1", "/ctl/PPPConn")}
        </serviceList>
      </device>
    </deviceList>
  </device>
</root>"""

class TestParseDescription(unittest.TestCase):
    def test_first_wan_connection_service(self):
        desc = parse_description(ROOT_DESC)
        self.assertEqual(desc.base_url, "http://10.0.0.1:1234")
        self.assertEqual(desc.endpoint, Resolved(
            "urn:schemas-upnp-org:service:WANIPConnection:1", "/ctl/IPConn"))

    def test_ppp_connection_in_document_order(self):
        doc = f"""<root><URLBase>http://10.0.0.1:80</URLBase>
        {service("urn:schemas-upnp-org:service:WANPPPConnection:1", "/ppp")}
        {service("urn:schemas-upnp-org:service:WANIPConnection:1", "/ip")}</root>"""
        desc = parse_description(doc)
        self.assertEqual(desc.endpoint, Resolved(
            "urn:schemas-upnp-org:service:WANPPPConnection:1", "/ppp"))

    def test_no_wan_connection_service(self):
        doc = f"""<root><URLBase>http://10.0.0.1:80/</URLBase>
        {service("urn:schemas-upnp-org:service:Layer3Forwarding:1", "/l3f")}</root>"""
        desc = parse_description(doc)
        self.assertIs(desc.endpoint, UNRESOLVED)
        self.assertEqual(desc.base_url, "http://10.0.0.1:80")

    def test_service_without_control_url_is_skipped(self):
        doc = """<root><URLBase>http://10.0.0.1:80/</URLBase>
        <service><serviceType>urn:schemas-upnp-org:service:WANIPConnection:1</serviceType>
        <controlURL></controlURL></service></root>"""
        self.assertIs(parse_description(doc).endpoint, UNRESOLVED)

    def test_first_service_with_control_url_wins(self):
        doc = f"""<root><URLBase>http://10.0.0.1:80</URLBase>
        <service><serviceType>urn:schemas-upnp-org:service:WANIPConnection:1</serviceType></service>
        {service("urn:schemas-upnp-org:service:WANPPPConnection:1", "/ppp")}</root>"""
        self.assertEqual(parse_description(doc).endpoint, Resolved(
            "urn:schemas-upnp-org:service:WANPPPConnection:1", "/ppp"))

    def test_blank_url_base_defaults_to_location(self):
        doc = f"""<root><URLBase>  </URLBase>
        {service("urn:schemas-upnp-org:service:WANIPConnection:1", "/ip")}</root>"""
        desc = parse_description(doc, "http://192.168.1.1:5000/rootDesc.xml")
        self.assertEqual(desc.base_url, "http://192.168.1.1:5000")

    def test_base_url_defaults_to_location(self):
        doc = f"""<root>{service("urn:schemas-upnp-org:service:WANIPConnection:1", "/ip")}</root>"""
        desc = parse_description(doc, "http://192.168.1.1:5000/rootDesc.xml")
        self.assertEqual(desc.base_url, "http://192.168.1.1:5000")

    def test_malformed_description(self):
        with self.assertRaises(ET.ParseError):
            parse_description("<root><URLBase>http://x</root>")

    def test_service_descriptor_fields(self):
        elem = ET.fromstring(service("urn:schemas-upnp-org:service:WANIPConnection:1", "/ctl/IPConn"))
        s = ServiceDescriptor.from_element(elem)
        self.assertEqual(s.service_type, "urn:schemas-upnp-org:service:WANIPConnection:1")
        self.assertEqual(s.service_id, "urn:upnp-org:serviceId:IPConn")
        self.assertEqual(s.control_url, "/ctl/IPConn")
        self.assertEqual(s.event_sub_url, "/evt/ctl/IPConn")
        self.assertEqual(s.scpd_url, "/scpd/ctl/IPConn.xml")
        self.assertTrue(s.is_wan_connection)

class TestFetchDescription(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.status = 200
        self.connection = None
        app = web.Application()
        app.router.add_get('/rootDesc.xml', self.handle)
        self.server = TestServer(app)
        await self.server.start_server()
        self.location = str(self.server.make_url('/rootDesc.xml'))

    async def asyncTearDown(self):
        await self.server.close()

    async def handle(self, request):
        self.connection = request.headers.get('Connection')
        return web.Response(status=self.status, text=ROOT_DESC, content_type='text/xml')

    async def test_fetch(self):
        desc = await fetch_description(self.location)
        self.assertEqual(desc.base_url, "http://10.0.0.1:1234")
        self.assertEqual(desc.endpoint.control_url, "/ctl/IPConn")
        self.assertEqual(self.connection, "keep-alive")

    async def test_fetch_non_200(self):
        self.status = 404
        with self.assertRaises(HTTPStatusError) as cm:
            await fetch_description(self.location)
        self.assertEqual(cm.exception.status, 404)

if __name__ == '__main__':
    unittest.main()
