"""Profile persistence backed by MongoDB or a local JSON file."""

from __future__ import annotations

import json
import os
import time
from copy import deepcopy
from pathlib import Path
from typing import Any, Callable, Mapping

import anyio
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel, ReturnDocument

from ..config import get_settings
from ..logging_utils import get_logger
from ..services.levels import level_for_wins

logger = get_logger("repositories.profiles")

COUNTER_FIELDS = ("wins", "losses", "draws")
STORAGE_ONLY_FIELDS = ("_id", "nickname_lower")


def now_ms() -> int:
    return int(time.time() * 1000)


def nickname_key(nickname: Any) -> str | None:
    """Lower-cased nickname without leading ``@`` used for lookups."""
    if not isinstance(nickname, str):
        return None
    cleaned = nickname.strip().lstrip("@").lower()
    return cleaned or None


def new_profile_document(open_id: str, fields: Mapping[str, Any], now: int) -> dict[str, Any]:
    """Build a complete profile from defaults overlaid with ``fields``."""
    document: dict[str, Any] = {
        "open_id": open_id,
        "nickname": f"@{open_id}",
        "avatar": None,
        "wins": 0,
        "losses": 0,
        "draws": 0,
        "deck": [],
        "created_at": now,
    }
    document.update({key: value for key, value in fields.items() if value is not None or key == "avatar"})
    document["open_id"] = open_id
    document["level"] = level_for_wins(document["wins"]).level
    document["nickname_lower"] = nickname_key(document["nickname"])
    document["updated_at"] = now
    return document


def _strip_storage_fields(document: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if document is None:
        return None
    cleaned = dict(document)
    for field in STORAGE_ONLY_FIELDS:
        cleaned.pop(field, None)
    return cleaned


class ProfileRepository:
    """Storage contract shared by the profile backends.

    Documents are plain dicts carrying the profile fields; timestamps are
    milliseconds since the epoch and ``level`` always follows ``wins``.
    """

    async def get(self, open_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    async def get_by_nickname(self, nickname: str) -> dict[str, Any] | None:
        raise NotImplementedError

    async def list(self, limit: int | None = None) -> list[dict[str, Any]]:
        raise NotImplementedError

    async def upsert(self, open_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    async def delete(self, open_id: str) -> bool:
        raise NotImplementedError

    async def increment(self, open_id: str, counters: Mapping[str, int]) -> dict[str, Any] | None:
        raise NotImplementedError

    async def ensure_indexes(self) -> None:
        return None

    async def close(self) -> None:
        return None


class MongoProfileRepository(ProfileRepository):
    """Profiles stored one document per ``open_id`` in a Mongo collection."""

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        *,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        settings = get_settings()
        self._collection: AsyncIOMotorCollection = database[settings.mongo_profiles_collection]
        self._on_close = on_close

    @staticmethod
    def _id_filter(open_id: str) -> dict[str, Any]:
        return {"open_id": open_id}

    async def get(self, open_id: str) -> dict[str, Any] | None:
        document = await self._collection.find_one(self._id_filter(open_id))
        return _strip_storage_fields(document)

    async def get_by_nickname(self, nickname: str) -> dict[str, Any] | None:
        key = nickname_key(nickname)
        if not key:
            return None
        bare = nickname.strip().lstrip("@")
        document = await self._collection.find_one(
            {
                "$or": [
                    {"nickname_lower": key},
                    {"nickname": {"$in": [bare, f"@{bare}"]}},
                ]
            }
        )
        return _strip_storage_fields(document)

    async def list(self, limit: int | None = None) -> list[dict[str, Any]]:
        cursor = self._collection.find({}).sort("updated_at", DESCENDING)
        if limit is not None:
            cursor = cursor.limit(limit)
        documents = await cursor.to_list(length=limit)
        return [_strip_storage_fields(document) for document in documents]

    async def upsert(self, open_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        now = now_ms()
        defaults = new_profile_document(open_id, {}, now)
        updates = {key: value for key, value in fields.items() if key not in ("open_id", "level")}
        if "nickname" in updates:
            updates["nickname_lower"] = nickname_key(updates["nickname"])
        if "wins" in updates:
            updates["level"] = level_for_wins(updates["wins"]).level
        updates["updated_at"] = now
        on_insert = {key: value for key, value in defaults.items() if key not in updates}

        document = await self._collection.find_one_and_update(
            self._id_filter(open_id),
            {"$set": updates, "$setOnInsert": on_insert},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        if not document:
            raise RuntimeError(f"Failed to persist profile '{open_id}'.")
        logger.info("Mongo write: upserted profile '%s' (%d field(s)).", open_id, len(fields))
        return _strip_storage_fields(document)

    async def delete(self, open_id: str) -> bool:
        result = await self._collection.delete_one(self._id_filter(open_id))
        deleted = getattr(result, "deleted_count", 0) > 0
        logger.info("Mongo write: delete profile '%s' -> %s.", open_id, "deleted" if deleted else "missing")
        return deleted

    async def increment(self, open_id: str, counters: Mapping[str, int]) -> dict[str, Any] | None:
        increments = {key: int(value) for key, value in counters.items() if key in COUNTER_FIELDS}
        document = await self._collection.find_one_and_update(
            self._id_filter(open_id),
            {"$inc": increments, "$set": {"updated_at": now_ms()}},
            return_document=ReturnDocument.AFTER,
        )
        if not document:
            return None
        if "wins" in increments:
            wins = document.get("wins", 0)
            level = level_for_wins(wins).level
            if document.get("level") != level:
                # Only while wins is unchanged; a later writer sets its own level.
                await self._collection.update_one(
                    {**self._id_filter(open_id), "wins": wins},
                    {"$set": {"level": level}},
                )
                document["level"] = level
        return _strip_storage_fields(document)

    async def ensure_indexes(self) -> None:
        logger.info("Ensuring Mongo indexes for profiles collection.")
        await self._collection.create_indexes(
            [
                IndexModel([("open_id", ASCENDING)], unique=True, name="profile_open_id_unique"),
                IndexModel([("nickname_lower", ASCENDING)], name="profile_nickname_lookup"),
                IndexModel([("updated_at", DESCENDING)], name="profile_recent_updates"),
            ]
        )

    async def close(self) -> None:
        if self._on_close is not None:
            self._on_close()


class JsonFileProfileRepository(ProfileRepository):
    """Profiles kept as a JSON array in a single file.

    Every write rewrites the whole file through a temporary sibling and an
    atomic rename. Writes are serialized with a lock, so counter increments
    never lose updates within one process.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._lock = anyio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_sync(self) -> list[dict[str, Any]]:
        try:
            raw = self._path.read_text(encoding="utf8")
        except FileNotFoundError:
            return []
        try:
            data = json.loads(raw or "[]")
        except ValueError:
            logger.warning("Profile file '%s' is not valid JSON; treating it as empty.", self._path)
            return []
        if not isinstance(data, list):
            logger.warning("Profile file '%s' does not hold a list; treating it as empty.", self._path)
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def _write_sync(self, documents: list[dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temporary = self._path.with_name(self._path.name + ".tmp")
        temporary.write_text(json.dumps(documents, indent=2), encoding="utf8")
        os.replace(temporary, self._path)

    async def _load(self) -> list[dict[str, Any]]:
        return await anyio.to_thread.run_sync(self._read_sync)

    async def _save(self, documents: list[dict[str, Any]]) -> None:
        await anyio.to_thread.run_sync(self._write_sync, documents)

    @staticmethod
    def _find(documents: list[dict[str, Any]], open_id: str) -> dict[str, Any] | None:
        for document in documents:
            if str(document.get("open_id")) == str(open_id):
                return document
        return None

    async def get(self, open_id: str) -> dict[str, Any] | None:
        documents = await self._load()
        return _strip_storage_fields(self._find(documents, open_id))

    async def get_by_nickname(self, nickname: str) -> dict[str, Any] | None:
        key = nickname_key(nickname)
        if not key:
            return None
        for document in await self._load():
            stored = document.get("nickname_lower") or nickname_key(document.get("nickname"))
            if stored == key:
                return _strip_storage_fields(document)
        return None

    async def list(self, limit: int | None = None) -> list[dict[str, Any]]:
        documents = await self._load()
        documents.sort(key=lambda entry: entry.get("updated_at") or 0, reverse=True)
        if limit is not None:
            documents = documents[:limit]
        return [_strip_storage_fields(document) for document in documents]

    async def upsert(self, open_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        async with self._lock:
            documents = await self._load()
            now = now_ms()
            existing = self._find(documents, open_id)
            if existing is None:
                stored = new_profile_document(open_id, fields, now)
                documents.append(stored)
            else:
                stored = existing
                stored.update({key: value for key, value in fields.items() if key not in ("open_id", "level")})
                stored["level"] = level_for_wins(stored.get("wins", 0)).level
                stored["nickname_lower"] = nickname_key(stored.get("nickname"))
                stored["updated_at"] = now
            await self._save(documents)
        logger.info("File write: upserted profile '%s' in '%s'.", open_id, self._path)
        return _strip_storage_fields(deepcopy(stored))

    async def delete(self, open_id: str) -> bool:
        async with self._lock:
            documents = await self._load()
            remaining = [entry for entry in documents if str(entry.get("open_id")) != str(open_id)]
            if len(remaining) == len(documents):
                return False
            await self._save(remaining)
        logger.info("File write: deleted profile '%s' from '%s'.", open_id, self._path)
        return True

    async def increment(self, open_id: str, counters: Mapping[str, int]) -> dict[str, Any] | None:
        async with self._lock:
            documents = await self._load()
            stored = self._find(documents, open_id)
            if stored is None:
                return None
            for key, value in counters.items():
                if key in COUNTER_FIELDS:
                    stored[key] = int(stored.get(key) or 0) + int(value)
            stored["level"] = level_for_wins(stored.get("wins", 0)).level
            stored["updated_at"] = now_ms()
            await self._save(documents)
        return _strip_storage_fields(deepcopy(stored))
