import asyncio
import socket
import logging
from exceptions import AddressResolutionError, DiscoveryTimeoutError, NoLocationError

# Constants for SSDP
SSDP_ADDR = "239.255.255.250"
SSDP_PORT = 1900
SSDP_MX = 3
SSDP_ST = "urn:schemas-upnp-org:service:WANIPConnection:1"
SSDP_TIMEOUT = 1.0

SEARCH_MESSAGE = (
    "M-SEARCH * HTTP/1.1\r\n"
    f"HOST: {SSDP_ADDR}:{SSDP_PORT}\r\n"
    f"ST: {SSDP_ST}\r\n"
    'MAN: "ssdp:discover"\r\n'
    f"MX: {SSDP_MX}\r\n"
    "\r\n"
).encode()

def parse_location(reply):
    """
    Scans the 'Name: Value' lines of an SSDP reply for LOCATION.
    Header names are case-insensitive; if several are present the last wins.
    """
    if isinstance(reply, bytes):
        reply = reply.decode('utf-8', errors='replace')
    location = None
    for line in reply.split("\r\n"):
        name, sep, value = line.partition(":")
        if not sep:
            continue
        if name.strip().upper() == "LOCATION":
            location = value.strip()
    return location

class SSDPSearchProtocol(asyncio.DatagramProtocol):
    """
    Sends one M-SEARCH and resolves self.reply with the first datagram back.
    """
    def __init__(self, target):
        self.target = target
        self.transport = None
        self.reply = asyncio.get_running_loop().create_future()

    def connection_made(self, transport):
        self.transport = transport
        transport.sendto(SEARCH_MESSAGE, self.target)

    def datagram_received(self, data, addr):
        if not self.reply.done():
            logging.debug(f"SSDP: Reply from {addr[0]}:{addr[1]}")
            self.reply.set_result(data)

    def error_received(self, exc):
        if not self.reply.done():
            self.reply.set_exception(exc)

async def _resolve(loop, host, port, family=0):
    try:
        infos = await loop.getaddrinfo(host, port, family=family, type=socket.SOCK_DGRAM)
    except socket.gaierror as e:
        raise AddressResolutionError(f"Cannot resolve {host}: {e}") from e
    if not infos:
        raise AddressResolutionError(f"Cannot resolve {host}")
    family, _, _, _, sockaddr = infos[0]
    return family, sockaddr

async def discover(local_ip, timeout=SSDP_TIMEOUT, address=SSDP_ADDR, port=SSDP_PORT):
    """
    Multicasts an M-SEARCH for a WAN connection service from local_ip and
    waits for a single reply. Returns the description URL it advertises.
    """
    loop = asyncio.get_running_loop()

    family, local_addr = await _resolve(loop, local_ip, 0)
    _, remote_addr = await _resolve(loop, address, port, family=family)

    logging.info("UPnP: Sending SSDP discovery...")
    transport, protocol = await loop.create_datagram_endpoint(
        lambda: SSDPSearchProtocol(remote_addr),
        local_addr=local_addr,
        family=family,
    )
    try:
        data = await asyncio.wait_for(protocol.reply, timeout=timeout)
    except asyncio.TimeoutError:
        logging.warning("UPnP: SSDP Discovery Timed out")
        raise DiscoveryTimeoutError(timeout) from None
    finally:
        transport.close()

    location = parse_location(data)
    if not location:
        raise NoLocationError()
    logging.info(f"UPnP: Router found at {location}")
    return location
