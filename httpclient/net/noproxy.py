"""
Turns a no-proxy list into a bypass predicate for ProxyConfig.

Entries may be

    - "*", which bypasses the proxy for every host,
    - a host name ("intranet.local"), which also matches all of its subdomains,
    - a domain suffix (".example.com"), which matches subdomains only,
    - an IP address ("10.1.2.3", "::1"),
    - a network in CIDR notation ("10.0.0.0/8", "fd00::/8").

Host names are compared case-insensitively. Ports are ignored.
"""

import ipaddress
import logging
from collections.abc import Callable
from collections.abc import Iterable

logger = logging.getLogger(__name__)


def parse_list(spec: str | None) -> tuple[str, ...]:
    """
    Splits a comma (or whitespace) separated no-proxy list.
    """
    if not spec:
        return ()
    return tuple(entry for entry in spec.replace(",", " ").split() if entry)


def _strip_port(entry: str) -> str:
    if entry.startswith("["):
        return entry[1:].partition("]")[0]
    if entry.count(":") == 1:
        return entry.partition(":")[0]
    return entry


def make_bypass_predicate(entries: Iterable[str]) -> Callable[[str], bool]:
    """
    Returns a function which tells whether a request to a given host should
    skip the proxy.
    """
    match_all = False
    names: set[str] = set()
    suffixes: list[str] = []
    networks: list[ipaddress.IPv4Network | ipaddress.IPv6Network] = []

    for raw in entries:
        entry = raw.strip().lower()
        if not entry:
            continue
        if entry == "*":
            match_all = True
            continue
        if "/" in entry:
            try:
                networks.append(ipaddress.ip_network(entry, strict=False))
            except ValueError:
                logger.warning(f"Ignoring invalid no-proxy network: {raw!r}")
            continue
        entry = _strip_port(entry)
        try:
            networks.append(ipaddress.ip_network(entry))
            continue
        except ValueError:
            pass
        if entry.startswith("*."):
            entry = entry[1:]
        if entry.startswith("."):
            suffixes.append(entry)
        else:
            names.add(entry.rstrip("."))

    def should_bypass(host: str) -> bool:
        if match_all:
            return True
        host = host.strip("[]").lower().rstrip(".")
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            pass
        else:
            return any(
                address.version == network.version and address in network
                for network in networks
            )
        if host in names:
            return True
        if any(host.endswith("." + name) for name in names):
            return True
        return any(host.endswith(suffix) for suffix in suffixes)

    return should_bypass
