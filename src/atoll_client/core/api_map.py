"""
API map discovery and URI resolution.

Atoll publishes its endpoints at a well-known path as a list of
`{id, links: [{rel, uri}]}` entries; callers resolve an (id, rel) pair to a
URI instead of hardcoding paths.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping, Optional

from .errors import AtollNotFoundError, AtollPreconditionError
from .links import find_unique
from .models import ApiMapItem, envelope_items
from .transport import RestTransport

MAP_RELATIVE_URL = "/api/v1"


def canonicalize_url(url: str) -> str:
    """
    Trim one trailing '/' from a host URL.
    Example: canonicalize_url('https://atoll.example.com/') -> 'https://atoll.example.com'

    A URL ending in '//' is left alone so that the function stays idempotent.
    """
    if url.endswith("/") and not url.endswith("//"):
        return url[:-1]
    return url


@dataclass(frozen=True)
class ApiMap:
    """Read-only index of API map entries by id."""

    entries: Mapping[str, ApiMapItem] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def from_items(cls, items: Iterable[ApiMapItem]) -> "ApiMap":
        index = {}
        for item in items:
            # last entry wins for a repeated id
            index[item.id] = item
        return cls(entries=MappingProxyType(index))

    def get(self, id: str) -> Optional[ApiMapItem]:
        return self.entries.get(id)

    def __contains__(self, id: object) -> bool:
        return id in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


async def load_map(transport: RestTransport, host_base_url: str) -> List[ApiMapItem]:
    """Fetch the API map entries from `host_base_url`; transport errors propagate."""
    payload = await transport.get(
        f"{host_base_url}{MAP_RELATIVE_URL}", operation="load_map"
    )
    return envelope_items(payload, ApiMapItem)


def resolve_relative(api_map: Optional[ApiMap], id: str, rel: str) -> str:
    if api_map is None:
        raise AtollPreconditionError("API Map needs to be retrieved first!")

    item = api_map.get(id)
    if item is None:
        raise AtollNotFoundError(f'Unable to find API Map Item with ID "{id}"')

    link = find_unique(
        item.links,
        lambda candidate: candidate.rel == rel,
        what=f'API Map Item Links with rel "{rel}"',
    )
    if link is None:
        raise AtollNotFoundError(
            f'Unable to find a matching API Map Item Link with rel "{rel}"'
        )
    return link.uri


def resolve_absolute(
    canonical_host: Optional[str], api_map: Optional[ApiMap], id: str, rel: str
) -> str:
    if not canonical_host:
        raise AtollPreconditionError("Canonical host URL has not been set!")
    return f"{canonical_host}{resolve_relative(api_map, id, rel)}"


__all__ = [
    "MAP_RELATIVE_URL",
    "ApiMap",
    "canonicalize_url",
    "load_map",
    "resolve_relative",
    "resolve_absolute",
]
