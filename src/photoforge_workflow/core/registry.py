from __future__ import annotations

from typing import Awaitable, Callable, Generic, Iterable, Iterator, Protocol, TypeVar

from photoforge_workflow.core.models import MediaFile, ProcessedModel


class _Keyed(Protocol):
    @property
    def id(self) -> str: ...


T = TypeVar("T", bound=_Keyed)

RemoteDelete = Callable[[str], Awaitable[None]]


class Registry(Generic[T]):
    """Ordered collection keyed by id; insertion order is display order.

    Adding an item whose id is already present replaces it in place.
    """

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._items: dict[str, T] = {}
        self.extend(items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    @property
    def is_empty(self) -> bool:
        return not self._items

    def ids(self) -> list[str]:
        return list(self._items)

    def items(self) -> list[T]:
        return list(self._items.values())

    def get(self, item_id: str) -> T | None:
        return self._items.get(item_id)

    def add(self, item: T) -> None:
        self._items[item.id] = item

    def extend(self, items: Iterable[T]) -> None:
        for item in items:
            self.add(item)

    def replace_all(self, items: Iterable[T]) -> None:
        self._items = {}
        self.extend(items)

    def remove(self, item_id: str) -> tuple[int, T]:
        """Remove an item and return (former position, item). Raises KeyError if absent."""
        if item_id not in self._items:
            raise KeyError(item_id)
        position = list(self._items).index(item_id)
        return position, self._items.pop(item_id)

    def restore(self, position: int, item: T) -> None:
        """Put a removed item back at its former position."""
        ordered = list(self._items.items())
        ordered.insert(min(position, len(ordered)), (item.id, item))
        self._items = dict(ordered)

    async def delete(self, item_id: str, remote_delete: RemoteDelete) -> T:
        """Remove locally, then delete remotely; roll back and re-raise if the remote call fails."""
        position, item = self.remove(item_id)
        try:
            await remote_delete(item_id)
        except BaseException:
            self.restore(position, item)
            raise
        return item


class MediaRegistry(Registry[MediaFile]):
    def file_urls(self) -> list[str]:
        return [m.file_url for m in self]

    def with_gps(self) -> list[MediaFile]:
        return [m for m in self if m.has_gps]


class ResultsRegistry(Registry[ProcessedModel]):
    def total_size_bytes(self) -> int:
        return sum(m.file_size_bytes or 0 for m in self)
