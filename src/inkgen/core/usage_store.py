"""Per-user usage document storage for the quota guard.

The quota guard only needs two operations on a per-user document: read it,
and write a few fields with merge semantics.  Two backends implement them:

- :class:`FirestoreUsageStore` - one document per user in a Firestore
  collection (``users/{userId}`` by default).  ``lastUpdated`` is set with a
  server timestamp on every write.
- :class:`InMemoryUsageStore` - a process-local dictionary for local
  development and tests.  Counters are lost on restart.

Document fields
---------------
``generationCount``
    Generations recorded for ``generationDate``.
``generationDate``
    ISO calendar date (``YYYY-MM-DD``) the count applies to.
``lastUpdated``
    Time of the last write.

Neither backend makes a read followed by a write atomic.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Protocol

COUNT_FIELD = "generationCount"
DATE_FIELD = "generationDate"
UPDATED_FIELD = "lastUpdated"


class UsageStore(Protocol):
    """Document store keyed by user id."""

    async def get(self, user_id: str) -> dict[str, Any] | None: ...

    async def set(self, user_id: str, data: dict[str, Any], *, merge: bool = True) -> None: ...


class FirestoreUsageStore:
    """Usage documents stored in a Firestore collection.

    Args:
        client: A ``google.cloud.firestore.AsyncClient``.
        collection: Collection holding one document per user.
    """

    def __init__(self, client: Any, collection: str = "users") -> None:
        self.client = client
        self.collection = collection

    @classmethod
    def from_project(cls, project: str | None = None, collection: str = "users") -> FirestoreUsageStore:
        """Create a store with a new async Firestore client."""
        from google.cloud import firestore

        return cls(firestore.AsyncClient(project=project), collection)

    def _document(self, user_id: str) -> Any:
        return self.client.collection(self.collection).document(user_id)

    async def get(self, user_id: str) -> dict[str, Any] | None:
        snapshot = await self._document(user_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    async def set(self, user_id: str, data: dict[str, Any], *, merge: bool = True) -> None:
        from google.cloud import firestore

        await self._document(user_id).set(
            {**data, UPDATED_FIELD: firestore.SERVER_TIMESTAMP},
            merge=merge,
        )


class InMemoryUsageStore:
    """Usage documents kept in a dictionary."""

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}

    async def get(self, user_id: str) -> dict[str, Any] | None:
        document = self._documents.get(user_id)
        return copy.deepcopy(document) if document is not None else None

    async def set(self, user_id: str, data: dict[str, Any], *, merge: bool = True) -> None:
        stamped = {**data, UPDATED_FIELD: datetime.now(timezone.utc)}
        if merge and user_id in self._documents:
            self._documents[user_id].update(stamped)
        else:
            self._documents[user_id] = stamped
