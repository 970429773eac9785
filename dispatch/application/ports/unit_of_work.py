"""Port interface for the transaction that makes one assignment or move durable."""

from abc import ABC, abstractmethod


class UnitOfWork(ABC):
    @abstractmethod
    async def commit(self) -> None:
        """Make every write since the last commit durable. Raises CommitError on failure."""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every write since the last commit."""
        ...


class NullUnitOfWork(UnitOfWork):
    """For stores whose writes are durable as soon as they return."""

    async def commit(self) -> None:
        return None

    async def rollback(self) -> None:
        return None
