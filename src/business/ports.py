"""
Collaborator contracts consumed by the business services.

Repositories and hashers are injected into the services; any object with the
matching methods satisfies these protocols (the MongoDB adapters in
``src.data.repositories`` in production, in-memory doubles in tests).
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

Record = Dict[str, Any]


class Repository(Protocol):
    """Persistence port for one entity."""

    async def find_by(self, filters: Sequence[Mapping[str, Any]]) -> List[Record]:
        """Records matching ANY of the equality maps in ``filters``."""
        ...

    async def list(self, query: Mapping[str, Any]) -> Dict[str, Any]:
        """``{page, perPage, lastPage, total, registers}``."""
        ...

    async def create(self, records: Sequence[Mapping[str, Any]]) -> List[Record]:
        ...

    async def update(self, where: Mapping[str, Any], patch: Mapping[str, Any]) -> List[Record]:
        ...

    async def remove(self, where: Mapping[str, Any]) -> List[Record]:
        ...


class Hasher(Protocol):
    """One-way hashing of secrets."""

    def hash(self, plaintext: str) -> str:
        ...

    def compare(self, plaintext: str, digest: Optional[str]) -> bool:
        ...


class TokenIssuer(Protocol):
    """Signs a session into a bearer token."""

    def encode(self, session: Any) -> str:
        ...


__all__ = ['Record', 'Repository', 'Hasher', 'TokenIssuer']
