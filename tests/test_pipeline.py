import asyncio
from datetime import timedelta

import httpx

from reputest.ingest.coordinator import MessageOutcome
from reputest.ingest.pipeline import IngestionPipeline
from reputest.scheduler import IngestionScheduler

from .conftest import T0, json_response, tweet_payload, user_payload

ALICE = user_payload("10", "alice")
BOB = user_payload("20", "bob")


def search_handler(pages_by_query: dict[str, list[dict]]):
    def handler(request: httpx.Request) -> httpx.Response:
        pages = pages_by_query[request.url.params["query"]]
        token = request.url.params.get("next_token")
        index = int(token) if token else 0
        body = dict(pages[index])
        if index + 1 < len(pages):
            body["meta"] = {"next_token": str(index + 1)}
        return json_response(body)

    return handler


def make_pipeline(client, coordinator, **kwargs) -> IngestionPipeline:
    return IngestionPipeline(
        client,
        coordinator,
        searches=IngestionPipeline.default_searches(),
        page_delay=0,
        clock=lambda: T0,
        **kwargs,
    )


async def test_pass_runs_hashtag_then_mentions(x_api, client, coordinator, vibes_repo):
    x_api.route(
        "GET",
        "/2/tweets/search/recent",
        search_handler(
            {
                "#gmgv": [
                    {"data": [tweet_payload("100", "@alice #gmgv", "20")], "includes": {"users": [ALICE, BOB]}},
                    {"data": [tweet_payload("101", "send 3 #megajoules to alice", "20")], "includes": {"users": [ALICE, BOB]}},
                ],
                "@reputest": [{"data": [tweet_payload("102", "@reputest hello", "20")], "includes": {"users": [BOB]}}],
            }
        ),
    )

    summary = await make_pipeline(client, coordinator).run_once()

    queries = [r.url.params["query"] for r in x_api.calls("GET", "/2/tweets/search/recent")]
    assert queries == ["#gmgv", "#gmgv", "@reputest"]
    assert summary.count(MessageOutcome.RECORDED) == 2
    assert summary.count(MessageOutcome.NO_INTENT) == 1
    assert summary.failed_searches == []
    assert "100" in vibes_repo.vibes and "101" in vibes_repo.transfers
    assert summary.total_vibes == 1


async def test_search_parameters(x_api, client, coordinator):
    x_api.route("GET", "/2/tweets/search/recent", lambda r: json_response({"meta": {"result_count": 0}}))

    await make_pipeline(client, coordinator).run_once()

    vibes, mentions = x_api.calls("GET", "/2/tweets/search/recent")
    assert vibes.url.params["start_time"] == (T0 - timedelta(hours=6)).strftime("%Y-%m-%dT%H:%M:%S.000Z")
    assert mentions.url.params["start_time"] == (T0 - timedelta(hours=24)).strftime("%Y-%m-%dT%H:%M:%S.000Z")
    assert vibes.url.params["max_results"] == "100"
    assert "author_id" in vibes.url.params["expansions"]
    assert "next_token" not in vibes.url.params


async def test_failed_search_does_not_block_the_other(x_api, client, coordinator, vibes_repo):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["query"] == "#gmgv":
            return json_response({"title": "Service Unavailable"}, 503)
        return json_response(
            {"data": [tweet_payload("200", "send 1 #megajoules to @alice", "20")], "includes": {"users": [ALICE, BOB]}}
        )

    x_api.route("GET", "/2/tweets/search/recent", handler)

    summary = await make_pipeline(client, coordinator).run_once()

    assert summary.failed_searches == ["vibes"]
    assert "200" in vibes_repo.transfers


async def test_search_page_cap(x_api, client, coordinator):
    endless = [{"data": []}] * 20
    x_api.route("GET", "/2/tweets/search/recent", search_handler({"#gmgv": endless, "@reputest": [{}]}))

    summary = await make_pipeline(client, coordinator, max_pages=3).run_once()

    assert summary.searches[0].pages == 3
    assert summary.searches[1].pages == 1


async def test_scheduler_runs_until_stopped():
    passes = 0
    stop = asyncio.Event()

    async def job():
        nonlocal passes
        passes += 1
        if passes == 3:
            stop.set()

    scheduler = IngestionScheduler(job, interval=0.01, stop_event=stop)
    await asyncio.wait_for(scheduler.run_forever(), timeout=5)

    assert passes == 3


async def test_scheduler_survives_failing_pass():
    calls = 0

    async def job():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("boom")

    scheduler = IngestionScheduler(job, interval=0.01)
    scheduler.start()
    while calls < 2:
        await asyncio.sleep(0.01)
    await scheduler.stop()

    assert not scheduler.running
    assert scheduler.passes >= 2
