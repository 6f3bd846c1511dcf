"""In-memory location (query string) service.

Holds the current query parameters of the dashboard URL. Updates that would
make the encoded query string longer than the configured limit are rejected
with StorageLimitError and leave the location unchanged.
"""

import logging
from urllib.parse import parse_qs, urlencode

from core import UrlQueryValue
from dashvars.config import get_max_url_length
from dashvars.errors import StorageLimitError

logger = logging.getLogger(__name__)

UrlQueryMap = dict[str, UrlQueryValue]


def encode_query(query: UrlQueryMap) -> str:
    """Encode a query map; list values repeat their key."""
    pairs: list[tuple[str, str]] = []
    for key, value in query.items():
        if value is None:
            continue
        if isinstance(value, list):
            pairs.extend((key, str(item)) for item in value)
        else:
            pairs.append((key, str(value)))
    return urlencode(pairs)


def parse_query(query_string: str) -> UrlQueryMap:
    """Parse a query string; repeated keys become lists."""
    parsed = parse_qs(query_string.lstrip("?"), keep_blank_values=True)
    return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}


class LocationService:
    def __init__(self, query: UrlQueryMap | None = None, max_length: int | None = None):
        self._query: UrlQueryMap = dict(query or {})
        self._max_length = max_length if max_length is not None else get_max_url_length()
        self._history: list[str] = []

    def get_search_object(self) -> UrlQueryMap:
        return dict(self._query)

    def get_query_string(self) -> str:
        return encode_query(self._query)

    @property
    def history(self) -> list[str]:
        """Query strings of every accepted update, oldest first."""
        return list(self._history)

    def partial(self, query: UrlQueryMap, replace: bool = False) -> None:
        """Merge `query` into the location. None values remove their key.

        Raises:
            StorageLimitError: If the result exceeds the maximum URL length.
        """
        updated = dict(self._query)
        for key, value in query.items():
            if value is None:
                updated.pop(key, None)
            else:
                updated[key] = value
        self._commit(updated, replace)

    def push(self, query: UrlQueryMap) -> None:
        """Replace the whole query."""
        self._commit({k: v for k, v in query.items() if v is not None}, replace=False)

    def _commit(self, query: UrlQueryMap, replace: bool) -> None:
        encoded = encode_query(query)
        if len(encoded) > self._max_length:
            raise StorageLimitError(len(encoded), self._max_length)

        self._query = query
        if replace and self._history:
            self._history[-1] = encoded
        else:
            self._history.append(encoded)
        logger.debug("[LOCATION] Query updated: %s", encoded)
