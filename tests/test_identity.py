import logging

import pytest

from reputest.core.errors import UpstreamError

from .conftest import json_response, user_payload


async def test_store_hit_skips_remote_lookup(x_api, resolver, user_repo):
    user_repo.add("10", "Alice")

    identity = await resolver.resolve("@alice")

    assert identity.id == "10"
    assert x_api.requests == []


async def test_remote_hit_is_stored(x_api, resolver, user_repo):
    x_api.route(
        "GET",
        "/2/users/by/username/bob",
        lambda r: json_response(
            {"data": user_payload("20", "bob", public_metrics={"followers_count": 42})}
        ),
    )

    identity = await resolver.resolve("bob")

    assert identity.id == "20"
    assert identity.follower_count == 42
    assert user_repo.users["20"].username == "bob"
    assert "public_metrics" in x_api.requests[0].url.params["user.fields"]


async def test_unknown_handle_returns_none(resolver, user_repo):
    assert await resolver.resolve("nobody") is None
    assert user_repo.users == {}


async def test_200_without_data_is_not_found(x_api, resolver):
    x_api.route(
        "GET",
        "/2/users/by/username/gone",
        lambda r: json_response({"errors": [{"title": "Not Found Error"}]}),
    )
    assert await resolver.resolve("gone") is None


async def test_lookup_failure_propagates(x_api, resolver):
    x_api.route("GET", "/2/users/by/username/carol", lambda r: json_response({}, 500))

    with pytest.raises(UpstreamError) as exc_info:
        await resolver.resolve("carol")
    assert exc_info.value.status == 500


async def test_unknown_handle_is_not_logged_as_error(resolver, caplog):
    with caplog.at_level(logging.DEBUG):
        assert await resolver.resolve("nobody") is None

    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]
