class IGDError(Exception):
    """
    Base class for errors raised while talking to an Internet Gateway Device.
    """
    pass

class NoLocalIPError(IGDError):
    def __init__(self, message="No local IP"):
        super().__init__(message)

class AddressResolutionError(IGDError):
    pass

class DiscoveryTimeoutError(IGDError, TimeoutError):
    def __init__(self, timeout):
        self.timeout = timeout
        super().__init__(f"No SSDP reply within {timeout}s")

class NoLocationError(IGDError):
    def __init__(self, message="No LOCATION in SSDP response"):
        super().__init__(message)

class HTTPStatusError(IGDError):
    """
    Non-200 answer from the gateway (or the external IP echo service).
    The raw body is kept so callers can look at the SOAP fault detail.
    """
    def __init__(self, status, reason, body=""):
        self.status = status
        self.reason = reason
        self.body = body
        super().__init__(f"{status} {reason}".strip())

class NoControlEndpointError(IGDError):
    def __init__(self, message="No WAN connection control endpoint"):
        super().__init__(message)

class NoResultElementError(IGDError):
    def __init__(self, element):
        self.element = element
        super().__init__(f"No {element} element in response")
