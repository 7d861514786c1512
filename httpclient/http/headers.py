from collections.abc import Iterable
from collections.abc import Iterator
from collections.abc import MutableMapping

# RFC 2616 section 3.7.1: text without an explicit charset is ISO-8859-1.
DEFAULT_CHARSET = "ISO-8859-1"


class Headers(MutableMapping):
    """
    Header class which allows both convenient access to individual headers as well as
    direct access to the underlying raw data. Provides a full dictionary interface.

    Headers are case insensitive and keep their insertion order:
    >>> h = Headers([("Host", "example.com"), ("Content-Type", "application/xml")])
    >>> h["content-type"]
    "application/xml"

    Setting a header replaces all existing headers with the same name. The header keeps
    its position, but is written with the casing that was set last:
    >>> h["content-TYPE"] = "text/plain"
    >>> h.fields
    (("Host", "example.com"), ("content-TYPE", "text/plain"))

    Repeated headers (e.g. from a response) can be added explicitly and are folded
    into a single value on lookup, as per RFC 7230:
    >>> h.add("Accept", "text/html")
    >>> h.add("accept", "application/xml")
    >>> h["Accept"]
    "text/html, application/xml"

    `bytes(h)` returns an HTTP/1 header block.
    """

    fields: tuple[tuple[str, str], ...]

    def __init__(self, fields: Iterable[tuple[str, str]] = ()):
        self.fields = tuple((str(k), str(v)) for k, v in fields)

    @staticmethod
    def _kconv(key: str) -> str:
        # Headers are case-insensitive
        return key.lower()

    @staticmethod
    def _reduce_values(values: list[str]) -> str:
        # Headers can be folded
        return ", ".join(values)

    def __repr__(self):
        fields = ", ".join(repr(field) for field in self.fields)
        return f"{type(self).__name__}[{fields}]"

    def __bytes__(self) -> bytes:
        return b"".join(
            f"{name}: {value}\r\n".encode("latin-1") for name, value in self.fields
        )

    def __getitem__(self, key: str) -> str:
        values = self.get_all(key)
        if not values:
            raise KeyError(key)
        return self._reduce_values(values)

    def __setitem__(self, key: str, value: str) -> None:
        self.set_all(key, [value])

    def __delitem__(self, key: str) -> None:
        if key not in self:
            raise KeyError(key)
        key = self._kconv(key)
        self.fields = tuple(
            field for field in self.fields if key != self._kconv(field[0])
        )

    def __iter__(self) -> Iterator[str]:
        seen = set()
        for key, _ in self.fields:
            key_kconv = self._kconv(key)
            if key_kconv not in seen:
                seen.add(key_kconv)
                yield key

    def __len__(self) -> int:
        return len({self._kconv(key) for key, _ in self.fields})

    def __eq__(self, other):
        if isinstance(other, Headers):
            return self.fields == other.fields
        return False

    def get_all(self, key: str) -> list[str]:
        """
        Return the list of all values for a given key.
        If that key is not present, the return value will be an empty list.
        """
        key = self._kconv(key)
        return [value for k, value in self.fields if self._kconv(k) == key]

    def set_all(self, key: str, values: Iterable[str]) -> None:
        """
        Remove the old values for a key and add new ones.
        The first existing field for that key keeps its position but takes the new casing.
        """
        key_kconv = self._kconv(key)
        values = [str(v) for v in values]

        new_fields = []
        for field in self.fields:
            if self._kconv(field[0]) == key_kconv:
                if values:
                    new_fields.append((key, values.pop(0)))
            else:
                new_fields.append(field)
        while values:
            new_fields.append((key, values.pop(0)))
        self.fields = tuple(new_fields)

    def add(self, key: str, value: str) -> None:
        """
        Add an additional value for the given key at the bottom.
        """
        self.fields = self.fields + ((str(key), str(value)),)

    def copy(self) -> "Headers":
        return Headers(self.fields)


def parse_content_type(c: str) -> tuple[str, dict[str, str]]:
    """
    A lenient parser for content-type values. Returns a (media type, parameters)
    tuple, where the media type is lowercased and parameters is a dict with
    lowercased keys.

    E.g. the following string:

        text/html; charset=UTF-8

    Returns:

        ("text/html", {"charset": "UTF-8"})
    """
    parts = c.split(";")
    params = {}
    for part in parts[1:]:
        clause = part.split("=", 1)
        if len(clause) == 2:
            params[clause[0].strip().lower()] = clause[1].strip().strip('"')
    return parts[0].strip().lower(), params
