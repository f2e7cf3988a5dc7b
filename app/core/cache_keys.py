"""Deterministic cache key construction.

Keys have the shape ``{prefix}{resource}:{v1}:{v2}:...``. Parameters are
passed as an explicitly ordered sequence so the key never depends on the order
in which a client happened to send its query string. Absent values render as
an empty segment rather than being dropped, keeping every key for a resource
the same shape.
"""

from __future__ import annotations

from typing import Any, Sequence

KeyParams = Sequence[tuple[str, Any]]

CHAPTER_LIST_RESOURCE = "chapters"
CHAPTER_ENTITY_RESOURCE = "chapter"

# Listing key order: filter fields, then pagination fields.
CHAPTER_LIST_KEY_FIELDS: tuple[str, ...] = (
    "class",
    "unit",
    "status",
    "subject",
    "weakChapters",
    "page",
    "limit",
)


def _render_segment(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    # ':' separates segments; keep filter values from forging extra ones
    return str(value).replace(":", "%3A")


class CacheKeyBuilder:
    """Builds namespaced cache keys from canonical, ordered parameters.

    Attributes:
        prefix: String prepended to every key (e.g. ``"chapterdash:"``).
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix

    def build(self, resource: str, params: KeyParams = ()) -> str:
        """Build a key for ``resource`` from ordered ``(name, value)`` pairs.

        Only values take part in the key; names document the order at the
        call site.
        """
        segments = [_render_segment(value) for _, value in params]
        return ":".join([f"{self.prefix}{resource}", *segments])

    def namespace_pattern(self, resource: str) -> str:
        """Glob pattern matching every parameterized key of ``resource``."""
        return f"{self.prefix}{resource}:*"

    def chapter_list_key(self, query: dict[str, Any]) -> str:
        """Key for a chapter listing, independent of the query's dict order."""
        return self.build(
            CHAPTER_LIST_RESOURCE,
            [(name, query.get(name)) for name in CHAPTER_LIST_KEY_FIELDS],
        )

    def chapter_key(self, chapter_id: str) -> str:
        return self.build(CHAPTER_ENTITY_RESOURCE, [("id", chapter_id)])
