"""Shared fixtures: in-memory repositories and a mock X API."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

import httpx
import pytest

from reputest.ingest.coordinator import IngestionCoordinator
from reputest.ingest.identity import IdentityResolver
from reputest.twitter.client import TwitterClient
from reputest.twitter.credentials import Credential, CredentialStore
from reputest.twitter.executor import AuthenticatedExecutor
from reputest.twitter.oauth import TokenRefresher
from shared.models.token import TokenKind
from shared.models.user import UserIdentity
from shared.models.vibes import TransferRecord, VibeRecord, VibeScores

API = "https://api.x.com"
T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def user_payload(user_id: str, username: str, **extra) -> dict:
    return {
        "id": user_id,
        "username": username,
        "name": username.title(),
        "created_at": "2020-01-01T00:00:00.000Z",
        **extra,
    }


def tweet_payload(tweet_id: str, text: str, author_id: str, **extra) -> dict:
    return {
        "id": tweet_id,
        "text": text,
        "author_id": author_id,
        "created_at": "2024-05-01T12:00:00.000Z",
        **extra,
    }


def json_response(payload: dict, status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(payload).encode(), headers={"content-type": "application/json"})


class FakeTokenRepository:
    def __init__(self) -> None:
        self.saved: list[tuple[TokenKind, str]] = []
        self.fail_saves = False

    async def get_latest_token(self, kind: TokenKind) -> str | None:
        for saved_kind, token in reversed(self.saved):
            if saved_kind is kind:
                return token
        return None

    async def save_token(self, kind: TokenKind, token: str) -> None:
        if self.fail_saves:
            raise ConnectionError("database unavailable")
        self.saved.append((kind, token))


class FakeVibesRepository:
    def __init__(self) -> None:
        self.vibes: dict[str, VibeRecord] = {}
        self.transfers: dict[str, TransferRecord] = {}
        self.claims: dict[str, str] = {}
        # Simulates a concurrent pass inserting the same row after the existence checks
        self.lose_insert_race = False

    async def vibe_exists_for_message(self, tweet_id: str) -> bool:
        return tweet_id in self.vibes

    async def vibe_exists_for_pair(self, emitter_id: str, sensor_id: str) -> bool:
        return await self.originating_message_id(emitter_id, sensor_id) is not None

    async def originating_message_id(self, emitter_id: str, sensor_id: str) -> str | None:
        for record in self.vibes.values():
            if record.emitter_id == emitter_id and record.sensor_id == sensor_id:
                return record.tweet_id
        return None

    async def insert_vibe(self, record: VibeRecord) -> bool:
        if self.lose_insert_race:
            return False
        if record.tweet_id in self.vibes:
            return False
        if await self.vibe_exists_for_pair(record.emitter_id, record.sensor_id):
            return False
        self.vibes[record.tweet_id] = record
        return True

    async def count_vibes(self) -> int:
        return len(self.vibes)

    async def vibe_scores(self, sensor_id: str, emitter_id: str) -> VibeScores:
        edges = [(r.emitter_id, r.sensor_id) for r in self.vibes.values()]

        def paths(start: str, length: int) -> list[str]:
            ends = [start]
            for _ in range(length):
                ends = [s for e in ends for (em, s) in edges if em == e]
            return ends

        return VibeScores(
            degree_one=paths(emitter_id, 1).count(sensor_id),
            degree_two=paths(emitter_id, 2).count(sensor_id),
            degree_three=paths(emitter_id, 3).count(sensor_id),
        )

    async def transfer_exists_for_message(self, tweet_id: str) -> bool:
        return tweet_id in self.transfers

    async def insert_transfer(self, record: TransferRecord) -> bool:
        if self.lose_insert_race:
            return False
        if record.tweet_id in self.transfers:
            return False
        self.transfers[record.tweet_id] = record
        return True

    async def is_claimed(self, tweet_id: str) -> bool:
        return tweet_id in self.claims

    async def claim_request(self, tweet_id: str, kind: str) -> bool:
        if tweet_id in self.claims:
            return False
        self.claims[tweet_id] = kind
        return True


class FakeUserRepository:
    def __init__(self, vibes: FakeVibesRepository | None = None) -> None:
        self.users: dict[str, UserIdentity] = {}
        self.following: set[tuple[str, str]] = set()
        self.vibes = vibes
        self.lookups = 0

    def add(self, user_id: str, username: str) -> UserIdentity:
        identity = UserIdentity(id=user_id, username=username, name=username.title(), created_at=T0)
        self.users[user_id] = identity
        return identity

    async def find_by_handle(self, handle: str) -> UserIdentity | None:
        self.lookups += 1
        handle = handle.lstrip("@").lower()
        for identity in self.users.values():
            if identity.username.lower() == handle:
                return identity
        return None

    async def upsert_identity(self, identity: UserIdentity) -> None:
        await self.upsert_identities([identity])

    async def upsert_identities(self, identities: Iterable[UserIdentity]) -> int:
        n = 0
        for identity in identities:
            self.users[identity.id] = identity
            n += 1
        return n

    async def upsert_following(self, follower_id: str, followed_ids: Iterable[str]) -> int:
        ids = list(followed_ids)
        self.following.update((follower_id, f) for f in ids)
        return len(ids)

    async def count_followed_with_vibes(self, follower_id: str, sensor_id: str) -> int:
        assert self.vibes is not None
        return sum(
            1
            for r in self.vibes.vibes.values()
            if r.sensor_id == sensor_id and (follower_id, r.emitter_id) in self.following
        )


class MockXApi:
    """Routes requests by method and path to handlers; records every request."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def posted_replies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.calls("POST", "/2/tweets")]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            if (request.method, request.url.path) == ("POST", "/2/tweets"):
                return json_response({"data": {"id": f"reply-{len(self.requests)}"}}, 201)
            return json_response({"title": "Not Found"}, 404)
        return handler(request)


@pytest.fixture
def x_api() -> MockXApi:
    return MockXApi()


@pytest.fixture
async def http(x_api: MockXApi):
    async with httpx.AsyncClient(transport=httpx.MockTransport(x_api)) as client:
        yield client


@pytest.fixture
def token_repo() -> FakeTokenRepository:
    return FakeTokenRepository()


@pytest.fixture
def credentials(token_repo: FakeTokenRepository) -> CredentialStore:
    return CredentialStore(
        Credential(
            access_token="old-access",
            refresh_token="old-refresh",
            client_id="client",
            client_secret="secret",
        ),
        token_repo,  # type: ignore[arg-type]
    )


@pytest.fixture
def executor(http: httpx.AsyncClient, credentials: CredentialStore) -> AuthenticatedExecutor:
    return AuthenticatedExecutor(http, credentials, TokenRefresher(http, API))


@pytest.fixture
def client(executor: AuthenticatedExecutor) -> TwitterClient:
    return TwitterClient(executor, API)


@pytest.fixture
def vibes_repo() -> FakeVibesRepository:
    return FakeVibesRepository()


@pytest.fixture
def user_repo(vibes_repo: FakeVibesRepository) -> FakeUserRepository:
    return FakeUserRepository(vibes_repo)


@pytest.fixture
def resolver(user_repo: FakeUserRepository, client: TwitterClient) -> IdentityResolver:
    return IdentityResolver(user_repo, client)  # type: ignore[arg-type]


@pytest.fixture
def coordinator(
    client: TwitterClient,
    resolver: IdentityResolver,
    user_repo: FakeUserRepository,
    vibes_repo: FakeVibesRepository,
) -> IngestionCoordinator:
    return IngestionCoordinator(
        client,
        resolver,
        user_repo,  # type: ignore[arg-type]
        vibes_repo,  # type: ignore[arg-type]
        page_delay=0,
    )
