"""Document stores for users and exercises.

Two backends implement the same async interface:

- ``MongoStore`` keeps ``users`` and ``exercises`` collections in MongoDB.
- ``ParquetStore`` keeps one Parquet file per collection on local disk.
  It is a development fallback for running without a MongoDB server.

Documents cross this boundary as plain dicts. Ids are hex strings,
dates are aware UTC datetimes.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

import polars as pl
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from exercise_tracker.config import (
    DATA_DIR,
    DEFAULT_DATABASE,
    EXERCISES_COLLECTION,
    MONGO_URI,
    STORE_BACKEND,
    USERS_COLLECTION,
)

logger = logging.getLogger(__name__)

Document = Dict[str, Any]

USER_SCHEMA = {"_id": pl.Utf8, "username": pl.Utf8}
EXERCISE_SCHEMA = {
    "_id": pl.Utf8,
    "userId": pl.Utf8,
    "description": pl.Utf8,
    "duration": pl.Float64,
    "date": pl.Datetime("ms"),
}


class ExerciseStore(Protocol):
    """Operations the HTTP handlers need from a store."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def create_user(self, username: str) -> Document:
        """Insert a user and return ``{_id, username}``."""
        ...

    async def list_users(self) -> List[Document]:
        """Return every user in store order."""
        ...

    async def find_user(self, user_id: str) -> Optional[Document]:
        """Return the user with ``user_id``, or None."""
        ...

    async def create_exercise(
        self,
        user_id: str,
        description: str,
        duration: Union[int, float],
        date: datetime,
    ) -> Document:
        """Insert an exercise and return it with its new ``_id``."""
        ...

    async def find_exercises(
        self,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Return a user's exercises in store order, without ``userId``.

        ``date_from`` and ``date_to`` are inclusive bounds.
        """
        ...


def _number(value: float) -> Union[int, float]:
    return int(value) if float(value).is_integer() else value


class MongoStore:
    """Store backed by a MongoDB database through motor.

    A ready-made client may be passed in, together with the database name
    to use on it; otherwise one is created from ``uri`` on start.
    """

    def __init__(
        self,
        uri: str = MONGO_URI,
        client: Optional[AsyncIOMotorClient] = None,
        database: Optional[str] = None,
    ):
        self.uri = uri
        self.client = client
        self.database = database
        self.db: Optional[AsyncIOMotorDatabase] = None
        self._owns_client = client is None

    async def start(self) -> None:
        """Open the client. Connections are established lazily by the driver."""
        if self.db is not None:
            return
        if self.client is None:
            self.client = AsyncIOMotorClient(self.uri, tz_aware=True)
        if self.database is None:
            self.db = self.client.get_default_database(DEFAULT_DATABASE)
        else:
            self.db = self.client[self.database]
        logger.info("Using MongoDB database %s", self.db.name)

    async def stop(self) -> None:
        """Close the client if this store opened it."""
        if self._owns_client and self.client is not None:
            self.client.close()
            self.client = None
        self.db = None

    async def create_user(self, username: str) -> Document:
        # __v mirrors the version key older deployments wrote
        result = await self.db[USERS_COLLECTION].insert_one(
            {"username": username, "__v": 0}
        )
        return {"_id": str(result.inserted_id), "username": username}

    async def list_users(self) -> List[Document]:
        cursor = self.db[USERS_COLLECTION].find({}, {"__v": 0})
        docs = await cursor.to_list(length=None)
        return [_from_mongo(doc) for doc in docs]

    async def find_user(self, user_id: str) -> Optional[Document]:
        if not ObjectId.is_valid(user_id):
            return None
        doc = await self.db[USERS_COLLECTION].find_one(
            {"_id": ObjectId(user_id)}, {"__v": 0}
        )
        if doc is None:
            return None
        return _from_mongo(doc)

    async def create_exercise(
        self,
        user_id: str,
        description: str,
        duration: Union[int, float],
        date: datetime,
    ) -> Document:
        doc = {
            "userId": user_id,
            "description": description,
            "duration": duration,
            "date": _naive_utc(date),
            "__v": 0,
        }
        result = await self.db[EXERCISES_COLLECTION].insert_one(doc)
        return {
            "_id": str(result.inserted_id),
            "userId": user_id,
            "description": description,
            "duration": duration,
            "date": date,
        }

    async def find_exercises(
        self,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        query: Dict[str, Any] = {"userId": user_id}
        if date_from is not None or date_to is not None:
            date_filter = {}
            if date_from is not None:
                date_filter["$gte"] = _naive_utc(date_from)
            if date_to is not None:
                date_filter["$lte"] = _naive_utc(date_to)
            query["date"] = date_filter

        cursor = self.db[EXERCISES_COLLECTION].find(query, {"userId": 0, "__v": 0})
        if limit:
            cursor = cursor.limit(limit)

        docs = await cursor.to_list(length=None)
        return [_from_mongo(doc) for doc in docs]


def _from_mongo(doc: Document) -> Document:
    """Stringify the id and make dates aware UTC, whatever the client's tz setting."""
    doc = {**doc, "_id": str(doc["_id"])}
    date = doc.get("date")
    if isinstance(date, datetime):
        if date.tzinfo is None:
            date = date.replace(tzinfo=timezone.utc)
        doc["date"] = date.astimezone(timezone.utc)
    return doc


class ParquetStore:
    """Store backed by one Parquet file per collection, for local development."""

    def __init__(self, data_dir: Union[str, Path] = DATA_DIR):
        self.data_dir = Path(data_dir)
        self.write_lock = asyncio.Lock()

    async def start(self) -> None:
        """Create the data directory."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Using Parquet store at %s", self.data_dir.resolve())

    async def stop(self) -> None:
        """Nothing to release; every write is already on disk."""

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.parquet"

    async def _insert(self, collection: str, record: Document, schema: Dict[str, Any]) -> None:
        """
        Append a record to a collection file.

        Parquet files can't be appended to in place, so the existing file is
        read, concatenated and written to a temporary file that replaces the
        original. The lock keeps concurrent inserts from losing records.
        """
        df = pl.DataFrame([record], schema=schema)
        file_path = self._path(collection)

        async with self.write_lock:
            if file_path.exists():
                df = pl.concat([pl.read_parquet(file_path), df])
            tmp_path = file_path.with_suffix(".parquet.tmp")
            df.write_parquet(tmp_path)
            tmp_path.replace(file_path)

    async def create_user(self, username: str) -> Document:
        record = {"_id": str(ObjectId()), "username": username}
        await self._insert(USERS_COLLECTION, record, USER_SCHEMA)
        return record

    async def list_users(self) -> List[Document]:
        file_path = self._path(USERS_COLLECTION)
        if not file_path.exists():
            return []
        return pl.read_parquet(file_path).to_dicts()

    async def find_user(self, user_id: str) -> Optional[Document]:
        file_path = self._path(USERS_COLLECTION)
        if not file_path.exists():
            return None

        df = pl.scan_parquet(file_path).filter(pl.col("_id") == user_id).collect()
        if df.is_empty():
            return None
        return df.row(0, named=True)

    async def create_exercise(
        self,
        user_id: str,
        description: str,
        duration: Union[int, float],
        date: datetime,
    ) -> Document:
        record = {
            "_id": str(ObjectId()),
            "userId": user_id,
            "description": description,
            "duration": float(duration),
            "date": _naive_utc(date),
        }
        await self._insert(EXERCISES_COLLECTION, record, EXERCISE_SCHEMA)
        return {**record, "duration": duration, "date": date}

    async def find_exercises(
        self,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        file_path = self._path(EXERCISES_COLLECTION)
        if not file_path.exists():
            return []

        # Filters are pushed down to the Parquet scan
        query = pl.scan_parquet(file_path).filter(pl.col("userId") == user_id)
        if date_from is not None:
            query = query.filter(pl.col("date") >= _naive_utc(date_from))
        if date_to is not None:
            query = query.filter(pl.col("date") <= _naive_utc(date_to))
        if limit:
            query = query.head(limit)

        df = query.select(["_id", "description", "duration", "date"]).collect()
        return [
            {
                **row,
                "duration": _number(row["duration"]),
                "date": row["date"].replace(tzinfo=timezone.utc),
            }
            for row in df.to_dicts()
        ]


def _naive_utc(value: datetime) -> datetime:
    """Parquet columns hold naive UTC timestamps."""
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def open_store(backend: str = STORE_BACKEND) -> ExerciseStore:
    """Create the store selected by configuration."""
    if backend == "mongo":
        return MongoStore(MONGO_URI)
    if backend == "parquet":
        return ParquetStore(DATA_DIR)
    raise ValueError(f"Unknown store backend: {backend!r}")
