from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import Page


class PageCollection(Sequence[Page]):
    """Lightweight helper for working with lists of Pages in layouts and code."""

    def __init__(self, pages: Iterable[Page]):
        self._pages = list(pages)
        self._sorted_cache: PageCollection | None = None

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        return self._pages[item]

    def with_tag(self, tag: str) -> PageCollection:
        return PageCollection(p for p in self._pages if tag in p.tags)

    def drafts(self) -> PageCollection:
        return PageCollection(p for p in self._pages if p.draft)

    def published(self) -> PageCollection:
        return PageCollection(p for p in self._pages if not p.draft)

    def sorted(self, reverse: bool = True) -> PageCollection:
        """Sort pages by date, then by filename.

        Args:
            reverse: If True (default), newest first.

        Returns:
            A new PageCollection with sorted pages.
        """
        if reverse and self._sorted_cache is not None:
            return self._sorted_cache

        def sort_key(p: Page):
            return (p.date, p.filename.lower())

        result = PageCollection(sorted(self._pages, key=sort_key, reverse=reverse))
        if reverse:
            self._sorted_cache = result
        return result

    def latest(self, count: int = 5) -> PageCollection:
        return PageCollection(self.sorted()[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageCollection({len(self._pages)} pages)"


class Collections(Mapping[str, PageCollection]):
    """Mapping of tag name to PageCollection.

    Every page lands in ``all``; each front-matter tag names a collection,
    so posts tagged ``post`` make up ``collections["post"]``. Looking up a
    tag nobody uses yields an empty collection.
    """

    def __init__(self, pages: Iterable[Page]):
        self.all = PageCollection(pages)
        grouped: dict[str, list[Page]] = {}
        for page in self.all:
            for tag in page.tags:
                grouped.setdefault(tag, []).append(page)
        self._mapping = {k: PageCollection(v) for k, v in grouped.items()}

    def __getitem__(self, key: str) -> PageCollection:
        if key == "all":
            return self.all
        return self._mapping.get(key, PageCollection([]))

    def __contains__(self, key) -> bool:
        return key == "all" or key in self._mapping

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __getattr__(self, name: str) -> PageCollection:
        # Lets Jinja layouts write collections.post
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Collections({len(self._mapping)} tags)"


def build_collections(pages: Iterable[Page]) -> Collections:
    return Collections(pages)
