from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import Document


class PostCollection(Sequence[Document]):
    """Lightweight helper for working with lists of posts in templates and code.

    Posts are kept newest first.
    """

    def __init__(self, posts: Iterable[Document]):
        self._posts = sorted(posts, key=lambda p: (p.date, p.slug), reverse=True)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._posts)

    def __len__(self) -> int:
        return len(self._posts)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return PostCollection(self._posts[item])
        return self._posts[item]

    def __bool__(self) -> bool:
        return bool(self._posts)

    def latest(self, count: int = 5) -> PostCollection:
        return PostCollection(self._posts[:count])

    def in_category(self, name: str) -> PostCollection:
        return PostCollection(p for p in self._posts if name in p.categories)

    def with_tag(self, tag: str) -> PostCollection:
        return PostCollection(p for p in self._posts if tag in p.tags)

    def drafts(self) -> PostCollection:
        return PostCollection(p for p in self._posts if p.draft)

    def by_year(self) -> list[tuple[int, PostCollection]]:
        """Group posts by year, newest year first."""
        years: dict[int, list[Document]] = {}
        for post in self._posts:
            years.setdefault(post.date.year, []).append(post)
        return [(year, PostCollection(posts)) for year, posts in years.items()]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostCollection({len(self._posts)} posts)"


class TaxonomyIndex(Mapping[str, PostCollection]):
    """Mapping of category or tag name to PostCollection, sorted by name."""

    def __init__(self, mapping: dict[str, Iterable[Document]]):
        self._mapping = {
            k: PostCollection(v) for k, v in sorted(mapping.items(), key=lambda kv: kv[0].lower())
        }

    @classmethod
    def of_categories(cls, posts: Iterable[Document]) -> TaxonomyIndex:
        return cls(_index(posts, "categories"))

    @classmethod
    def of_tags(cls, posts: Iterable[Document]) -> TaxonomyIndex:
        return cls(_index(posts, "tags"))

    def __getitem__(self, key: str) -> PostCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TaxonomyIndex({len(self._mapping)} entries)"


def _index(posts: Iterable[Document], attr: str) -> dict[str, list[Document]]:
    index: dict[str, list[Document]] = {}
    for post in posts:
        for name in getattr(post, attr):
            index.setdefault(name, []).append(post)
    return index
