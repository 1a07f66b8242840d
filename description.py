import aiohttp
import logging
from urllib.parse import urlparse
from exceptions import HTTPStatusError
from soap import HTTP_TIMEOUT, client_timeout, decode_body
from xml_scanner import XMLScanner, local_name

class Unresolved:
    """
    No WAN connection service was found on the gateway.
    """
    def __repr__(self):
        return "Unresolved()"

    def __eq__(self, other):
        return isinstance(other, Unresolved)

    def __hash__(self):
        return hash(Unresolved)

UNRESOLVED = Unresolved()

class Resolved:
    """
    Control endpoint of the gateway's WAN connection service.
    schema is the service type, used as the SOAP action namespace.
    """
    def __init__(self, schema: str, control_url: str):
        self.schema = schema
        self.control_url = control_url

    def __repr__(self):
        return f"Resolved(schema={self.schema!r}, control_url={self.control_url!r})"

    def __eq__(self, other):
        return (isinstance(other, Resolved) and
                (self.schema, self.control_url) == (other.schema, other.control_url))

    def __hash__(self):
        return hash((self.schema, self.control_url))

class ServiceDescriptor:
    FIELDS = {
        'serviceType': 'service_type',
        'serviceId': 'service_id',
        'controlURL': 'control_url',
        'eventSubURL': 'event_sub_url',
        'SCPDURL': 'scpd_url',
    }

    def __init__(self, service_type="", service_id="", control_url="",
                 event_sub_url="", scpd_url=""):
        self.service_type = service_type
        self.service_id = service_id
        self.control_url = control_url
        self.event_sub_url = event_sub_url
        self.scpd_url = scpd_url

    @classmethod
    def from_element(cls, elem):
        service = cls()
        for child in elem:
            attr = cls.FIELDS.get(local_name(child.tag))
            if attr:
                setattr(service, attr, (child.text or "").strip())
        return service

    @property
    def is_wan_connection(self):
        # WANIPConnection:1 and WANPPPConnection:1 both qualify
        return self.service_type.endswith("Connection:1")

class DeviceDescription:
    def __init__(self, base_url: str, endpoint):
        self.base_url = base_url
        self.endpoint = endpoint

def default_base_url(location):
    parsed = urlparse(location)
    if not parsed.scheme or not parsed.netloc:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}"

def parse_description(body, location=""):
    """
    Scans a device description for URLBase and the first WAN connection
    service, in document order.
    """
    scanner = XMLScanner(body)
    base_url = None
    endpoint = UNRESOLVED

    while scanner.next():
        name = local_name(scanner.current.tag)
        if name == "URLBase":
            text = scanner.text()
            if text and text.strip():
                base_url = text.strip().rstrip("/")
        elif name == "service":
            elem = scanner.element()
            if elem is None:
                continue
            service = ServiceDescriptor.from_element(elem)
            if service.is_wan_connection and service.control_url:
                endpoint = Resolved(service.service_type, service.control_url)
                break

    if scanner.error is not None:
        raise scanner.error

    if base_url is None:
        base_url = default_base_url(location)
    return DeviceDescription(base_url, endpoint)

async def fetch_description(location, timeout=HTTP_TIMEOUT):
    """
    Downloads the device description at location and parses it.
    """
    headers = {'Connection': 'keep-alive'}
    async with aiohttp.ClientSession(timeout=client_timeout(timeout)) as session:
        async with session.get(location, headers=headers) as resp:
            raw = await resp.read()
            if resp.status != 200:
                raise HTTPStatusError(resp.status, resp.reason or "", decode_body(raw))

    description = parse_description(raw, location)
    if isinstance(description.endpoint, Resolved):
        logging.info(f"UPnP: Control endpoint {description.endpoint.control_url} "
                     f"({description.endpoint.schema})")
    else:
        logging.warning("UPnP: No WAN connection service in device description")
    return description
