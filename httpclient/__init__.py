from httpclient.client import HttpClient
from httpclient.config import ClientConfig
from httpclient.http.request import Method
from httpclient.http.request import OutboundRequest
from httpclient.http.request import RequestBuilder
from httpclient.http.response import InboundResponse
from httpclient.net.proxy import ProxyConfig
from httpclient.net.tcp import ConnectionTarget


def request(url: str) -> RequestBuilder:
    """
    Shorthand for RequestBuilder(url).
    """
    return RequestBuilder(url)


__all__ = [
    "HttpClient",
    "ClientConfig",
    "ConnectionTarget",
    "Method",
    "OutboundRequest",
    "RequestBuilder",
    "InboundResponse",
    "ProxyConfig",
    "request",
]
