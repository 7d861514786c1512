import logging
from collections.abc import Mapping
from dataclasses import dataclass

from httpclient.net import noproxy
from httpclient.net.proxy import ProxyConfig

logger = logging.getLogger(__name__)

CONF_CACERT_PATH = "HTTPCLIENT_CACERT_PATH"
CONF_CACERT_PASSPHRASE = "HTTPCLIENT_CACERT_PASSPHRASE"
CONF_PROXY_URL = "HTTPCLIENT_PROXY_URL"
CONF_NOPROXY = "HTTPCLIENT_NOPROXY"

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 10.0


@dataclass(frozen=True)
class ClientConfig:
    """
    Client-wide defaults. Requests can override the proxy, the TLS context and
    the timeouts individually.

    ca_path:
        A PEM bundle of trusted CA certificates. If it does not point to an
        existing file, the platform trust store is used.
    ca_passphrase:
        Handed to OpenSSL when it asks for a password while loading ca_path.
    proxy_url:
        A forward proxy for all requests that do not set their own.
    no_proxy:
        Hosts, domains, addresses and networks that never go through the
        default proxy. See httpclient.net.noproxy.
    """

    ca_path: str | None = None
    ca_passphrase: str | None = None
    proxy_url: str | None = None
    no_proxy: tuple[str, ...] = ()
    connect_timeout: float | None = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float | None = DEFAULT_READ_TIMEOUT
    user_agent: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str], **kwargs) -> "ClientConfig":
        """
        Reads the HTTPCLIENT_* settings from the given mapping, usually os.environ.
        Keyword arguments take precedence.
        """
        values = dict(
            ca_path=environ.get(CONF_CACERT_PATH) or None,
            ca_passphrase=environ.get(CONF_CACERT_PASSPHRASE) or None,
            proxy_url=environ.get(CONF_PROXY_URL) or None,
            no_proxy=noproxy.parse_list(environ.get(CONF_NOPROXY)),
        )
        values.update(kwargs)
        return cls(**values)

    def proxy_config(self) -> ProxyConfig | None:
        """
        The default proxy, with the no-proxy list attached as bypass predicate.

        Raises:
            ValueError, if proxy_url is invalid.
        """
        if not self.proxy_url:
            return None
        bypass = noproxy.make_bypass_predicate(self.no_proxy) if self.no_proxy else None
        return ProxyConfig.from_url(self.proxy_url, bypass=bypass)
