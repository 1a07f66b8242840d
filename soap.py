import aiohttp
import logging
from xml.sax.saxutils import escape
from exceptions import HTTPStatusError
from xml_scanner import XMLScanner

# Seconds before an HTTP exchange with the gateway is abandoned
HTTP_TIMEOUT = 10

SOAP_ENVELOPE = """<?xml version="1.0" encoding="UTF-8" standalone="no" ?>
<SOAP-ENV:Envelope
 SOAP-ENV:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/"
 xmlns:SOAP-ENV="http://schemas.xmlsoap.org/soap/envelope/"
 xmlns:SOAP-ENC="http://schemas.xmlsoap.org/soap/encoding/"
 xmlns:xsi="http://www.w3.org/1999/XMLSchema-instance"
 xmlns:xsd="http://www.w3.org/1999/XMLSchema">
<SOAP-ENV:Body>
  {body}
</SOAP-ENV:Body>
</SOAP-ENV:Envelope>"""

def build_envelope(body):
    """
    Wraps an action fragment in the SOAP 1.1 envelope UPnP control points use.
    The fragment is inserted as is.
    """
    return SOAP_ENVELOPE.format(body=body)

def build_action(schema, action, arguments=()):
    """
    Renders <m:Action xmlns:m="schema"> with one child per (name, value) pair,
    keeping the order of the pairs.
    """
    args = ''.join(
        f"\n<{name}>{escape(str(value))}</{name}>" for name, value in arguments
    )
    if args:
        args += "\n"
    namespace = escape(schema, {'"': "&quot;"})
    return f'<m:{action} xmlns:m="{namespace}">{args}</m:{action}>'

def control_url(base_url, path):
    if path.startswith('http://') or path.startswith('https://'):
        return path
    return base_url + path

def client_timeout(timeout):
    return aiohttp.ClientTimeout(total=timeout)

async def _post(url, schema, action, body, timeout):
    envelope = build_envelope(body).encode('utf-8')
    headers = {
        'SOAPAction': f'"{schema}#{action}"',
        'Content-Type': 'text/xml',
        'Connection': 'Close',
        'Content-Length': str(len(envelope)),
    }
    logging.debug(f"SOAP: {action} -> {url}")

    async with aiohttp.ClientSession(timeout=client_timeout(timeout)) as session:
        async with session.post(url, data=envelope, headers=headers) as resp:
            raw = await resp.read()
            if resp.status != 200:
                logging.debug(f"SOAP: {action} rejected with {resp.status}")
                raise HTTPStatusError(resp.status, resp.reason or "", decode_body(raw))
            return raw

def decode_body(raw):
    return raw.decode('utf-8', errors='replace')

async def post_action(url, schema, action, body, timeout=HTTP_TIMEOUT):
    """
    POSTs one SOAP action and returns the raw response body.

    Raises HTTPStatusError on anything but 200, keeping the body so the
    gateway's fault detail is not lost.
    """
    return decode_body(await _post(url, schema, action, body, timeout))

async def invoke(url, schema, action, body, timeout=HTTP_TIMEOUT):
    """
    Same as post_action, but hands back a scanner over the response so the
    caller can pick out the result element it expects.
    """
    return XMLScanner(await _post(url, schema, action, body, timeout))
