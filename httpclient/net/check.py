import ipaddress
import re

# DNS labels, but we allow underscores as some internal names use them.
_label_valid = re.compile(r"^[A-Z\d\-_]{1,63}$", re.IGNORECASE)


def is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def is_valid_host(host: str) -> bool:
    """
    Checks if we can connect to `host`: a DNS name or an IPv4/IPv6 address
    (without brackets). International names are checked in their IDNA form.
    """
    if not host or not isinstance(host, str):
        return False
    if is_ip_address(host):
        return True
    try:
        name = host.encode("idna").decode("ascii")
    except UnicodeError:
        return False
    # RFC1035: 255 bytes or less.
    if len(name) > 255:
        return False
    return all(_label_valid.match(label) for label in name.removesuffix(".").split("."))


def is_valid_port(port: int) -> bool:
    """Port 0 is fine for binding but not for connecting."""
    return isinstance(port, int) and 0 < port <= 65535
