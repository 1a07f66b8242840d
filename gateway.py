import asyncio
import socket
import logging
import aiohttp
import soap
import ssdp
from description import UNRESOLVED, Resolved, fetch_description
from exceptions import HTTPStatusError, NoControlEndpointError, NoLocalIPError, NoResultElementError
from xml_scanner import local_name

# Plain-text echo of the caller's public address, used when the gateway
# exposes no WAN connection service
EXTERNAL_IP_URL = "http://myexternalip.com/raw"
PORT_MAPPING_DESCRIPTION = "upnpbind"
PORT_MAPPING_PROTOCOL = "UDP"

def get_local_ip(probe=("8.8.8.8", 80)):
    """
    Determines the local IP address of this machine.
    """
    # connect() on a UDP socket only picks the route, nothing is sent
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect(probe)
        ip = s.getsockname()[0]
    except OSError as e:
        raise NoLocalIPError() from e
    finally:
        s.close()
    if not ip or ip == "0.0.0.0":
        raise NoLocalIPError()
    return ip

class Gateway:
    """
    One UPnP Internet Gateway Device session.

    setup() must complete before the other operations are of any use:
    it finds the gateway over SSDP and learns its WAN connection control
    endpoint. If the gateway has none, get_external_ip() falls back to a
    public echo service and add_port_mapping() refuses to run.
    """
    def __init__(self, local_ip=None, ssdp_timeout=ssdp.SSDP_TIMEOUT,
                 http_timeout=soap.HTTP_TIMEOUT, external_ip_url=EXTERNAL_IP_URL,
                 ssdp_addr=ssdp.SSDP_ADDR, ssdp_port=ssdp.SSDP_PORT):
        self.local_ip = local_ip
        self.ssdp_timeout = ssdp_timeout
        self.http_timeout = http_timeout
        self.external_ip_url = external_ip_url
        self.ssdp_addr = ssdp_addr
        self.ssdp_port = ssdp_port

        self.location = None
        self.base_url = ""
        self.endpoint = UNRESOLVED
        self.external_ip = None
        self._lock = asyncio.Lock()

    @property
    def resolved(self):
        return isinstance(self.endpoint, Resolved)

    async def setup(self):
        """
        Discover -> fetch device description -> remember the control endpoint.
        Nothing is stored unless every step succeeds.
        """
        async with self._lock:
            local_ip = self.local_ip or get_local_ip()
            location = await ssdp.discover(
                local_ip, timeout=self.ssdp_timeout,
                address=self.ssdp_addr, port=self.ssdp_port,
            )
            description = await fetch_description(location, timeout=self.http_timeout)

            self.local_ip = local_ip
            self.location = location
            self.base_url = description.base_url
            self.endpoint = description.endpoint

    async def get_external_ip(self):
        async with self._lock:
            if isinstance(self.endpoint, Resolved):
                ip = await self._soap_external_ip(self.endpoint)
            else:
                ip = await self._echo_external_ip()
            self.external_ip = ip
            return ip

    async def _echo_external_ip(self):
        logging.debug(f"UPnP: Asking {self.external_ip_url} for the external IP")
        timeout = soap.client_timeout(self.http_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(self.external_ip_url) as resp:
                raw = await resp.read()
                if resp.status != 200:
                    raise HTTPStatusError(resp.status, resp.reason or "", soap.decode_body(raw))
        return soap.decode_body(raw).strip()

    async def _soap_external_ip(self, endpoint):
        body = soap.build_action(endpoint.schema, "GetExternalIPAddress")
        scanner = await soap.invoke(
            soap.control_url(self.base_url, endpoint.control_url),
            endpoint.schema, "GetExternalIPAddress", body,
            timeout=self.http_timeout,
        )
        while scanner.next():
            if local_name(scanner.current.tag) == "NewExternalIPAddress":
                text = scanner.text()
                if text is not None:
                    return text.strip()
                break
        if scanner.error is not None:
            raise scanner.error
        raise NoResultElementError("NewExternalIPAddress")

    async def add_port_mapping(self, internal_port: int, external_port: int) -> str:
        """
        Asks the gateway to forward UDP external_port to internal_port on this
        host. The lease never expires. Returns the gateway's raw response body.
        """
        async with self._lock:
            endpoint = self.endpoint
            if not isinstance(endpoint, Resolved):
                raise NoControlEndpointError()

            body = soap.build_action(endpoint.schema, "AddPortMapping", [
                ("NewRemoteHost", ""),
                ("NewExternalPort", external_port),
                ("NewProtocol", PORT_MAPPING_PROTOCOL),
                ("NewInternalPort", internal_port),
                ("NewInternalClient", self.local_ip),
                ("NewEnabled", 1),
                ("NewPortMappingDescription", PORT_MAPPING_DESCRIPTION),
                ("NewLeaseDuration", 0),
            ])
            response = await soap.post_action(
                soap.control_url(self.base_url, endpoint.control_url),
                endpoint.schema, "AddPortMapping", body,
                timeout=self.http_timeout,
            )
            logging.info(f"UPnP: Port {external_port} mapped to {self.local_ip}:{internal_port}")
            return response
