from typing import Generic, Optional, Protocol, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class Cache(Protocol[K, V]):
    def get(self, key: K) -> Optional[V]: ...

    def put(self, key: K, value: V) -> None: ...

    def delete(self, key: K) -> None: ...

    def values(self) -> list[V]: ...

    def clear(self) -> None: ...


class MemoryCache(Generic[K, V]):
    """Process local cache, only ever touched from the event loop thread."""

    def __init__(self) -> None:
        self._items: dict[K, V] = {}

    def get(self, key: K) -> Optional[V]:
        return self._items.get(key)

    def put(self, key: K, value: V) -> None:
        self._items[key] = value

    def delete(self, key: K) -> None:
        self._items.pop(key, None)

    def values(self) -> list[V]:
        return list(self._items.values())

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items
