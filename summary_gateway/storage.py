# summary_gateway/storage.py - object stores and the fail-soft summary cache on top of them
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from . import models
from .db import Base
from .schemas import CachedSummaryPayload

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class CacheBackendError(RuntimeError):
    """Raised by an object store when the backend itself fails."""


class ObjectStore(Protocol):
    name: str

    def get(self, key: str) -> Optional[bytes]: ...

    def put(self, key: str, body: bytes, content_type: str) -> None: ...


class MemoryObjectStore:
    """Process-local store; handy for tests and local runs."""

    name = "memory"

    def __init__(self):
        self._objects: Dict[str, Tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            entry = self._objects.get(key)
        return entry[0] if entry else None

    def put(self, key: str, body: bytes, content_type: str) -> None:
        with self._lock:
            self._objects[key] = (body, content_type)

    def content_type(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._objects.get(key)
        return entry[1] if entry else None

    def keys(self):
        with self._lock:
            return sorted(self._objects)


class SqlObjectStore:
    name = "sql"

    def __init__(self, session_factory: sessionmaker, engine: Optional[Engine] = None):
        self._session_factory = session_factory
        self.engine = engine

    def create_tables(self) -> None:
        if self.engine is not None:
            Base.metadata.create_all(bind=self.engine)

    def get(self, key: str) -> Optional[bytes]:
        try:
            with self._session_factory() as db:
                item = db.get(models.SummaryObject, key)
                return item.body.encode("utf-8") if item else None
        except SQLAlchemyError as e:
            raise CacheBackendError(f"sql get failed for {key}: {e}") from e

    def put(self, key: str, body: bytes, content_type: str) -> None:
        try:
            try:
                self._upsert(key, body, content_type)
            except IntegrityError:
                # a concurrent writer inserted first; overwrite it
                self._upsert(key, body, content_type)
        except SQLAlchemyError as e:
            raise CacheBackendError(f"sql put failed for {key}: {e}") from e

    def _upsert(self, key: str, body: bytes, content_type: str) -> None:
        with self._session_factory() as db:
            item = db.get(models.SummaryObject, key)
            if item:
                item.body = body.decode("utf-8")
                item.content_type = content_type
                item.updated_ts = datetime.now(timezone.utc)
            else:
                db.add(models.SummaryObject(
                    key=key,
                    body=body.decode("utf-8"),
                    content_type=content_type,
                    updated_ts=datetime.now(timezone.utc),
                ))
            db.commit()


class S3ObjectStore:
    """S3 or any S3-compatible bucket (R2, MinIO) through boto3."""

    name = "s3"

    def __init__(self, bucket: str, client=None, endpoint_url: Optional[str] = None,
                 region: Optional[str] = None):
        if not bucket:
            raise ValueError("bucket is required")
        self.bucket = bucket
        if client is None:
            client = boto3.client("s3", endpoint_url=endpoint_url, region_name=region)
        self._client = client

    def get(self, key: str) -> Optional[bytes]:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                return None
            raise CacheBackendError(f"s3 get failed for s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise CacheBackendError(f"s3 get failed for s3://{self.bucket}/{key}: {e}") from e

    def put(self, key: str, body: bytes, content_type: str) -> None:
        try:
            self._client.put_object(Bucket=self.bucket, Key=key, Body=body, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise CacheBackendError(f"s3 put failed for s3://{self.bucket}/{key}: {e}") from e


class SummaryCache:
    """
    Fail-soft get/put of summaries keyed by cache key.

    read() never raises: a missing store, missing object, backend failure or
    malformed payload all come back as None. write() never raises either; a
    failed write is logged and dropped.
    """

    def __init__(self, store: Optional[ObjectStore], model_tag: str):
        self.store = store
        self.model_tag = model_tag

    @property
    def backend_name(self) -> str:
        return self.store.name if self.store is not None else "none"

    def read(self, key: str) -> Optional[str]:
        if self.store is None:
            return None
        try:
            raw = self.store.get(key)
        except Exception as e:
            logger.warning("[CACHE] read failed for %s, treating as miss: %s", key, e)
            return None
        if raw is None:
            logger.debug("[CACHE] miss %s", key)
            return None

        try:
            payload = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            logger.warning("[CACHE] parse failed for %s: %s", key, e)
            return None
        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str) or not text.strip():
            logger.warning("[CACHE] payload for %s has no usable text", key)
            return None
        logger.debug("[CACHE] hit %s", key)
        return text.strip()

    def write(self, key: str, summary_text: str) -> None:
        if self.store is None:
            return
        payload = CachedSummaryPayload(text=summary_text, model=self.model_tag)
        body = json.dumps(payload.model_dump(), ensure_ascii=False).encode("utf-8")
        try:
            self.store.put(key, body, JSON_CONTENT_TYPE)
        except Exception:
            logger.warning("[CACHE] write failed for %s", key, exc_info=True)
            return
        logger.debug("[CACHE] stored %s (%d bytes)", key, len(body))
