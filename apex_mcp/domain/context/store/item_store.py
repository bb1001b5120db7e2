from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class ItemStore(Protocol):
    """Key-value store with per-key expiry.

    There are no transactions and no atomic append; multi-step updates are
    get-then-put at the call site. Implementations raise
    ``StoreUnavailableError`` when the backend cannot be reached.
    """

    async def get(self, key: str) -> Optional[str]:
        ...

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def clear_expired(self) -> int:
        """Drop every expired key and return how many were removed"""
        ...
