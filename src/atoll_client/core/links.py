from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable, Optional, TypeVar

from .errors import AtollAmbiguousError

if TYPE_CHECKING:
    from .models import Link

T = TypeVar("T")


def find_unique(
    items: Iterable[T], predicate: Callable[[T], bool], *, what: str
) -> Optional[T]:
    """
    Return the single item matching `predicate`.
    Zero matches -> None, more than one -> AtollAmbiguousError.
    `what` describes the lookup for the error message.
    """
    matches = [item for item in items if predicate(item)]
    if not matches:
        return None
    if len(matches) > 1:
        raise AtollAmbiguousError(f"Found {len(matches)} matching {what}")
    return matches[0]


def find_link_by_rel(links: Iterable["Link"], rel: str) -> Optional["Link"]:
    """
    Find the link with relation `rel` in a resource's links list.
    Example: find_link_by_rel(sprint.links, 'self') -> Link(rel='self', uri='/api/v1/sprints/1')
    """
    return find_unique(
        links or [], lambda link: link.rel == rel, what=f'links with rel "{rel}"'
    )


def find_link_uri_by_rel(links: Iterable["Link"], rel: str) -> Optional[str]:
    link = find_link_by_rel(links, rel)
    return link.uri if link else None


__all__ = ["find_unique", "find_link_by_rel", "find_link_uri_by_rel"]
