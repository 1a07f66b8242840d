import aiohttp
import argparse
import asyncio
import sys
import logging
import xml.etree.ElementTree as ET
from exceptions import IGDError
from gateway import Gateway

DEFAULT_PORT = 1234
DEFAULT_DURATION = 60

class Packeter(asyncio.DatagramProtocol):
    """
    Prints every datagram it receives.
    """
    def datagram_received(self, data, addr):
        print("From:", f"{addr[0]}:{addr[1]}")
        print(data.decode('utf-8', errors='replace'))

async def listen(port, map_port=True, duration=DEFAULT_DURATION):
    gateway = Gateway()
    await gateway.setup()
    external_ip = await gateway.get_external_ip()
    if map_port:
        await gateway.add_port_mapping(port, port)

    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        Packeter, local_addr=('0.0.0.0', port)
    )
    print(f"Listening on {external_ip}:{port}")
    try:
        await asyncio.sleep(duration)
    finally:
        transport.close()

def parse_address(value):
    host, sep, port = value.rpartition(':')
    if not sep or not host:
        raise argparse.ArgumentTypeError(f"expected host:port, got {value!r}")
    try:
        return host.strip('[]'), int(port)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port in {value!r}")

async def send(addr, message):
    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        asyncio.DatagramProtocol, remote_addr=addr
    )
    try:
        transport.sendto(message.encode('utf-8'))
    finally:
        transport.close()
    print(f'Sent "{message}" to {addr[0]}:{addr[1]}')

def build_parser():
    parser = argparse.ArgumentParser(prog="igdp")
    subparsers = parser.add_subparsers(title="commands", dest="command", required=True)

    parser_listen = subparsers.add_parser("listen", help="map a UDP port and print what arrives")
    parser_listen.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser_listen.add_argument("--no-map", action="store_true",
                               help="only look up the external IP, leave the port closed")
    parser_listen.add_argument("--duration", type=float, default=DEFAULT_DURATION)

    parser_send = subparsers.add_parser("send", help="send one UDP message")
    parser_send.add_argument("address", type=parse_address)
    parser_send.add_argument("message", nargs="*")
    return parser

def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    # Suppress noisy logs from libraries
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    try:
        if args.command == "listen":
            asyncio.run(listen(args.port, map_port=not args.no_map, duration=args.duration))
        else:
            asyncio.run(send(args.address, " ".join(args.message) or "Hello"))
    except (IGDError, aiohttp.ClientError, ET.ParseError, OSError) as e:
        print(e)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nExiting...")

if __name__ == '__main__':
    main()
