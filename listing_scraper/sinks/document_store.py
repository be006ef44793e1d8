"""External document store adapters for idempotent record upserts.

Both backends merge: fields present in the upsert overwrite stored values,
fields absent from it are left untouched. Failures surface as
``ExternalSinkError``; the output sink decides what to do with them.
"""

import asyncio
import base64
import binascii
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import redis.asyncio as redis

from listing_scraper.crawl.errors import ExternalSinkError, FatalInitError

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Keyed document store supporting merge-style upserts."""

    backend: str = ""

    @abstractmethod
    async def upsert(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """
        Merge ``fields`` into document ``collection/doc_id``, creating it if needed.

        Raises:
            ExternalSinkError: If the write fails
        """
        pass

    async def close(self) -> None:
        pass


class FirestoreDocumentStore(DocumentStore):
    """Cloud Firestore via firebase-admin (sync client run in a worker thread)."""

    backend = "firestore"

    def __init__(self, client, app=None):
        self._client = client
        self._app = app

    @classmethod
    def from_service_account_base64(cls, encoded: str, app_name: str = "listing-scraper") -> "FirestoreDocumentStore":
        """
        Initialize from a base64-encoded service account JSON.

        Raises:
            FatalInitError: If credentials are missing or unreadable
        """
        if not encoded:
            raise FatalInitError("External sync is enabled but FIREBASE_SERVICE_ACCOUNT_BASE64 is not set")
        try:
            service_account = json.loads(base64.b64decode(encoded).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise FatalInitError(f"FIREBASE_SERVICE_ACCOUNT_BASE64 is not valid base64 JSON: {e}") from e

        import firebase_admin
        from firebase_admin import credentials, firestore

        try:
            app = firebase_admin.get_app(app_name)
        except ValueError:
            try:
                app = firebase_admin.initialize_app(credentials.Certificate(service_account), name=app_name)
            except ValueError as e:
                raise FatalInitError(f"Invalid Firebase service account: {e}") from e

        logger.info(f"Firestore initialized for project {service_account.get('project_id', '?')}")
        return cls(firestore.client(app), app)

    async def upsert(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        ref = self._client.collection(collection).document(doc_id)
        try:
            await asyncio.to_thread(ref.set, fields, merge=True)
        except Exception as e:
            raise ExternalSinkError(collection, doc_id, f"Firestore upsert {collection}/{doc_id} failed: {e}") from e

    async def close(self) -> None:
        if self._app is not None:
            import firebase_admin

            firebase_admin.delete_app(self._app)
            self._app = None


class RedisDocumentStore(DocumentStore):
    """Redis hashes at ``<collection>:<id>``, one JSON-encoded value per field."""

    backend = "redis"

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    @staticmethod
    def _key(collection: str, doc_id: str) -> str:
        return f"{collection}:{doc_id}"

    async def upsert(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        if not fields:
            return
        mapping = {name: json.dumps(value, default=str) for name, value in fields.items()}
        try:
            client = await self._get_redis()
            await client.hset(self._key(collection, doc_id), mapping=mapping)
        except redis.RedisError as e:
            raise ExternalSinkError(collection, doc_id, f"Redis upsert {collection}:{doc_id} failed: {e}") from e

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        client = await self._get_redis()
        raw = await client.hgetall(self._key(collection, doc_id))
        if not raw:
            return None
        return {name: json.loads(value) for name, value in raw.items()}

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None


def create_document_store(
    backend: str,
    firebase_service_account_base64: str = "",
    redis_url: str = "",
) -> DocumentStore:
    """
    Build the configured document store.

    Raises:
        FatalInitError: If the backend is unknown or its credentials are missing
    """
    backend = (backend or "").lower()
    if backend == "firestore":
        return FirestoreDocumentStore.from_service_account_base64(firebase_service_account_base64)
    if backend == "redis":
        if not redis_url:
            raise FatalInitError("External sync is enabled but REDIS_URL is not set")
        return RedisDocumentStore(redis_url)
    raise FatalInitError(f"Unknown external store backend: {backend!r}")
