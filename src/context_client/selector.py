"""Provider selector matching.

When a provider declares several selectors, a resource must satisfy **all**
of them. Within a selector every present condition must hold.
"""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Callable, List, Optional, Sequence
from urllib.parse import urlsplit

from .models import ResourceDescriptor, Selector

ResourceMatcher = Callable[[ResourceDescriptor], bool]


def _resource_path(uri: str) -> str:
    parts = urlsplit(uri)
    return parts.path if parts.scheme else uri


def match_path(pattern: str, uri: str) -> bool:
    """Glob-match ``pattern`` against the path component of ``uri``."""

    path = _resource_path(uri)
    candidates = {path, path.lstrip("/")}
    if pattern.startswith("**/"):
        patterns = (pattern, pattern[3:])
    else:
        patterns = (pattern,)
    return any(fnmatchcase(c, p) for c in candidates for p in patterns)


def _selector_matcher(selector: Selector) -> ResourceMatcher:
    def matches(resource: ResourceDescriptor) -> bool:
        if selector.path is not None and not match_path(selector.path, resource.uri):
            return False
        if selector.content_contains is not None:
            # Fails closed when there is no content to search
            if resource.content is None or selector.content_contains not in resource.content:
                return False
        return True

    return matches


def match_selectors(selectors: Optional[Sequence[Selector]]) -> ResourceMatcher:
    """Build a predicate deciding whether a provider applies to a resource."""

    if selectors is None:
        return lambda resource: True
    if len(selectors) == 0:
        return lambda resource: False

    matchers: List[ResourceMatcher] = [_selector_matcher(s) for s in selectors]
    return lambda resource: all(m(resource) for m in matchers)


def matches(
    selectors: Optional[Sequence[Selector]], resource: ResourceDescriptor
) -> bool:
    return match_selectors(selectors)(resource)
