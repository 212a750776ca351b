from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from src.consular.config import settings

logger = logging.getLogger(__name__)


class ProfileMirror(ABC):
    """Write-through copy of user and profile records into a document store.

    The relational repositories stay authoritative: the mirror has no read
    path and never reconciles. Implementations must not raise.
    """

    @abstractmethod
    def upsert_user(self, user: BaseModel) -> None:
        raise NotImplementedError

    @abstractmethod
    def upsert_profile(self, profile: BaseModel) -> None:
        raise NotImplementedError


class NullProfileMirror(ProfileMirror):
    def upsert_user(self, user: BaseModel) -> None:
        return None

    def upsert_profile(self, profile: BaseModel) -> None:
        return None


class MongoProfileMirror(ProfileMirror):
    """Mirror backed by two MongoDB collections, ``users`` and ``profiles``.

    Documents are keyed by the relational id (stored as ``_id``) so repeated
    writes replace the previous copy.
    """

    def __init__(self, users: Collection, profiles: Collection) -> None:
        self._users = users
        self._profiles = profiles

    @classmethod
    def from_url(cls, url: str, db_name: str) -> "MongoProfileMirror":
        client: MongoClient = MongoClient(url, serverSelectionTimeoutMS=5000, connectTimeoutMS=10000)
        database = client[db_name]
        return cls(database["users"], database["profiles"])

    @staticmethod
    def _document(model: BaseModel) -> Dict[str, Any]:
        data = model.model_dump(mode="json")
        data["_id"] = data.pop("id")
        return data

    def _upsert(self, collection: Collection, model: BaseModel, kind: str) -> None:
        document = self._document(model)
        try:
            collection.replace_one({"_id": document["_id"]}, document, upsert=True)
        except PyMongoError:
            logger.exception("Failed to mirror %s %s to MongoDB", kind, document["_id"])

    def upsert_user(self, user: BaseModel) -> None:
        self._upsert(self._users, user, "user")

    def upsert_profile(self, profile: BaseModel) -> None:
        self._upsert(self._profiles, profile, "profile")


_mirror: Optional[ProfileMirror] = None


def get_profile_mirror() -> ProfileMirror:
    """Return the process-wide mirror, building it lazily from settings."""

    global _mirror
    if _mirror is None:
        if settings.mongodb_url:
            _mirror = MongoProfileMirror.from_url(settings.mongodb_url, settings.mongodb_db_name)
            logger.info("Profile mirror enabled (database=%s)", settings.mongodb_db_name)
        else:
            _mirror = NullProfileMirror()
    return _mirror


def set_profile_mirror(mirror: Optional[ProfileMirror]) -> None:
    global _mirror
    _mirror = mirror


def mirror_user(user: BaseModel) -> None:
    """Best-effort mirror of a user write; failures are logged, never raised."""

    try:
        get_profile_mirror().upsert_user(user)
    except Exception:
        logger.exception("Profile mirror unavailable; user %s not mirrored", getattr(user, "id", None))


def mirror_profile(profile: BaseModel) -> None:
    try:
        get_profile_mirror().upsert_profile(profile)
    except Exception:
        logger.exception("Profile mirror unavailable; profile %s not mirrored", getattr(profile, "id", None))
