import logging

from OpenSSL import SSL

from httpclient.config import ClientConfig
from httpclient.http import http1
from httpclient.http.request import OutboundRequest
from httpclient.http.request import RequestBuilder
from httpclient.http.response import InboundResponse
from httpclient.net import proxy as proxy_tunnel
from httpclient.net import tcp
from httpclient.net import tls
from httpclient.net.proxy import ProxyConfig

logger = logging.getLogger(__name__)


class HttpClient:
    """
    Runs requests: connect (directly or through a proxy tunnel), write the
    request, read the response and close the connection.

    A client keeps no connection state. Every call opens and closes its own
    socket, so a single client can be shared between threads.

    >>> client = HttpClient(ClientConfig.from_env(os.environ))
    >>> response = client.execute(client.request("https://example.com/").build())
    >>> response.status_code
    200
    """

    def __init__(self, config: ClientConfig | None = None):
        self.config = config or ClientConfig()
        self.default_proxy = self.config.proxy_config()

    def __repr__(self):
        return f"<HttpClient proxy={self.default_proxy}>"

    def request(self, url: str) -> RequestBuilder:
        """Starts a request using this client's default User-Agent."""
        return RequestBuilder(url, user_agent=self.config.user_agent)

    def tls_context_for(self, request: OutboundRequest) -> SSL.Context:
        if request.tls_context is not None:
            return request.tls_context
        return tls.default_client_context(
            self.config.ca_path, self.config.ca_passphrase
        )

    def proxy_for(self, request: OutboundRequest) -> ProxyConfig | None:
        """
        The proxy a request goes through, or None for a direct connection.
        """
        proxy = request.proxy or self.default_proxy
        if proxy is not None and proxy.should_bypass(request.target.host):
            logger.debug(f"Bypassing proxy {proxy} for {request.target.host}")
            return None
        return proxy

    def connect(self, request: OutboundRequest) -> tcp.Connection:
        target = request.target
        context = self.tls_context_for(request) if target.use_tls else None
        connect_timeout = (
            request.connect_timeout
            if request.connect_timeout is not None
            else self.config.connect_timeout
        )
        read_timeout = (
            request.read_timeout
            if request.read_timeout is not None
            else self.config.read_timeout
        )
        proxy = self.proxy_for(request)
        if proxy is None:
            return tcp.connect(target, context, connect_timeout, read_timeout)
        return proxy_tunnel.connect(
            proxy, target, context, connect_timeout, read_timeout
        )

    def execute(self, request: OutboundRequest | RequestBuilder) -> InboundResponse | None:
        """
        Sends a request and reads the response. In fire-and-forget mode, no
        response is read and None is returned.

        The connection is always closed afterwards.

        Raises:
            httpclient.exceptions.HttpClientException and its subclasses.
        """
        if isinstance(request, RequestBuilder):
            request = request.build()
        with self.connect(request) as conn:
            http1.write_request(conn.wfile, request)
            if request.fire_and_forget:
                logger.debug(f"Not waiting for a response from {request.target}")
                return None
            return http1.read_response(conn.rfile, request.method.value)
