"""Testing utilities: MongoDB, HTTP session and client stubs."""

from __future__ import annotations

import json
from copy import deepcopy
from functools import cmp_to_key
from itertools import count
from typing import Any, Dict, Iterable, List

from app.errors import LeaderBoxError
from app.schemas import Movie, ProviderIdentity


class StubCursor:
    """Minimal cursor wrapper to simulate Motor's async cursor."""

    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self._documents = documents
        self._limit: int | None = None

    def limit(self, value: int) -> "StubCursor":
        self._limit = value
        return self

    def sort(self, key: str, direction: int = 1) -> "StubCursor":
        order = -1 if direction in (-1, "desc", "descending") else 1

        def comparator(left: dict[str, Any], right: dict[str, Any]) -> int:
            left_value = left.get(key)
            right_value = right.get(key)
            if left_value == right_value:
                return 0
            if left_value is None:
                return 1
            if right_value is None:
                return -1
            return -order if left_value < right_value else order

        self._documents = sorted(self._documents, key=cmp_to_key(comparator))
        return self

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        documents = deepcopy(self._documents)
        effective_length = length
        if self._limit is not None:
            effective_length = self._limit if effective_length is None else min(self._limit, effective_length)
        if effective_length is None:
            return documents
        return documents[:effective_length]


class StubCollection:
    """In-memory Motor-like collection used for repository and API tests."""

    def __init__(self) -> None:
        self.documents: list[dict[str, Any]] = []
        self.created_indexes: list[dict[str, Any]] = []
        self._ids = count(1)

    def _matches(self, document: dict[str, Any], filter_: dict[str, Any]) -> bool:
        for key, value in filter_.items():
            if key == "$or":
                if not any(self._matches(document, clause) for clause in value):
                    return False
                continue
            candidate = document.get(key)
            if isinstance(value, dict) and "$in" in value:
                if candidate not in list(value["$in"]):
                    return False
            elif candidate != value:
                return False
        return True

    def _first(self, filter_: dict[str, Any]) -> dict[str, Any] | None:
        for document in self.documents:
            if self._matches(document, filter_):
                return document
        return None

    @staticmethod
    def _apply(document: dict[str, Any], update: dict[str, Any]) -> None:
        document.update(deepcopy(update.get("$set", {})))
        for key, amount in update.get("$inc", {}).items():
            document[key] = document.get(key, 0) + amount

    async def find_one(self, filter_: dict[str, Any]) -> dict[str, Any] | None:
        match = self._first(filter_)
        return deepcopy(match) if match is not None else None

    def find(self, filter_: dict[str, Any] | None = None) -> StubCursor:
        filter_ = filter_ or {}
        return StubCursor([deepcopy(document) for document in self.documents if self._matches(document, filter_)])

    async def find_one_and_update(
        self,
        filter_: dict[str, Any],
        update: dict[str, Any],
        *,
        upsert: bool = False,
        **_: Any,
    ) -> dict[str, Any] | None:
        match = self._first(filter_)
        if match is None:
            if not upsert:
                return None
            match = {"_id": next(self._ids)}
            match.update({key: value for key, value in filter_.items() if not key.startswith("$")})
            match.update(deepcopy(update.get("$setOnInsert", {})))
            self.documents.append(match)
        self._apply(match, update)
        return deepcopy(match)

    async def update_one(self, filter_: dict[str, Any], update: dict[str, Any], **_: Any):
        match = self._first(filter_)
        if match is not None:
            self._apply(match, update)
        return type("UpdateResult", (), {"matched_count": int(match is not None)})()

    async def delete_one(self, filter_: dict[str, Any]):
        for index, document in enumerate(self.documents):
            if self._matches(document, filter_):
                self.documents.pop(index)
                return type("DeleteResult", (), {"deleted_count": 1})()
        return type("DeleteResult", (), {"deleted_count": 0})()

    async def create_indexes(self, indexes: Iterable[Any]):
        created = []
        for raw in indexes:
            document = getattr(raw, "document", raw)
            name = document.get("name")
            key_spec = document.get("key")
            keys = tuple(key_spec.items()) if isinstance(key_spec, dict) else ()
            self.created_indexes.append({"name": name, "keys": keys, "unique": document.get("unique", False)})
            created.append(name)
        return created


class StubDatabase:
    """Dictionary-like helper that returns stub collections."""

    def __init__(self) -> None:
        self._collections: dict[str, StubCollection] = {}

    def __getitem__(self, name: str) -> StubCollection:
        if name not in self._collections:
            self._collections[name] = StubCollection()
        return self._collections[name]


class StubResponse:
    """Just enough of :class:`requests.Response` for the HTTP clients."""

    def __init__(self, status_code: int = 200, payload: Any = None, *, text: str | None = None, url: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)
        self.url = url

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class StubSession:
    """Records outgoing requests and replays queued responses in order."""

    def __init__(self, *responses: StubResponse | Exception) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.headers: dict[str, str] = {}
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> StubResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


class StubTmdbClient:
    """Stands in for :class:`app.tmdb.TmdbClient` in API tests."""

    def __init__(self, results: List[Dict[str, Any]] | None = None, *, error: Exception | None = None) -> None:
        self._results = [Movie.model_validate(entry) for entry in results or []]
        self._error = error
        self.queries: list[str] = []

    async def search_movies(self, query: str, **_: Any) -> List[Movie]:
        self.queries.append(query)
        if self._error:
            raise self._error
        return self._results


class StubOAuthProvider:
    """Provider double returning canned tokens and identity."""

    def __init__(
        self,
        name: str = "tiktok",
        *,
        open_id: str = "tt-user",
        nickname: str | None = "Movie Fan",
        avatar: str | None = "https://example.com/a.png",
        error: LeaderBoxError | None = None,
    ) -> None:
        self.name = name
        self._identity = ProviderIdentity(open_id=open_id, nickname=nickname, avatar=avatar)
        self._error = error
        self.exchanges: list[dict[str, Any]] = []

    def authorization_url(self, *, state: str, code_challenge: str, redirect_uri: str | None = None) -> str:
        return f"https://auth.example.com/{self.name}?state={state}&code_challenge={code_challenge}"

    async def exchange_code(self, code: str, code_verifier: str | None, redirect_uri: str | None = None) -> Dict[str, Any]:
        self.exchanges.append({"code": code, "code_verifier": code_verifier, "redirect_uri": redirect_uri})
        if self._error:
            raise self._error
        return {"access_token": "stub-access", "open_id": self._identity.open_id}

    async def fetch_identity(self, tokens: Dict[str, Any]) -> ProviderIdentity:
        return self._identity

    def close(self) -> None:
        return None
