import asyncio
import logging
import signal

import httpx

from reputest.core.config import ReputestSettings, get_settings
from reputest.core.errors import ConfigurationError
from reputest.core.logging import setup_logging
from reputest.ingest.coordinator import IngestionCoordinator
from reputest.ingest.extraction import build_matchers
from reputest.ingest.identity import IdentityResolver
from reputest.ingest.pipeline import IngestionPipeline
from reputest.scheduler import IngestionScheduler
from reputest.twitter.client import TwitterClient
from reputest.twitter.credentials import CredentialStore
from reputest.twitter.executor import AuthenticatedExecutor
from reputest.twitter.oauth import TokenRefresher
from shared.crypto import TokenCipher, TokenCipherError
from shared.database import DatabaseManager
from shared.migrations import MigrationRunner
from shared.repositories import TokenRepository, UserRepository, VibesRepository

LOGGER: logging.Logger = logging.getLogger("reputest")


def build_cipher(settings: ReputestSettings) -> TokenCipher | None:
    if not settings.token_encryption_key:
        LOGGER.warning("TOKEN_ENCRYPTION_KEY not set, tokens are stored in plain text")
        return None
    try:
        return TokenCipher.from_hex(settings.token_encryption_key)
    except TokenCipherError as e:
        raise ConfigurationError(f"Invalid TOKEN_ENCRYPTION_KEY: {e}") from e


async def run(settings: ReputestSettings) -> None:
    db = DatabaseManager(settings.database_url)
    await db.connect()
    http = httpx.AsyncClient(timeout=settings.request_timeout)
    stop_event = asyncio.Event()

    try:
        await MigrationRunner(db.pool).run_pending()

        tokens = TokenRepository(db.pool, build_cipher(settings))
        credentials = await CredentialStore.load(
            tokens, settings.xapi_client_id, settings.xapi_client_secret
        )
        executor = AuthenticatedExecutor(
            http, credentials, TokenRefresher(http, settings.api_base_url)
        )
        client = TwitterClient(executor, settings.api_base_url)
        users = UserRepository(db.pool)
        coordinator = IngestionCoordinator(
            client,
            IdentityResolver(users, client),
            users,
            VibesRepository(db.pool),
            bot_handle=settings.bot_handle,
            matchers=build_matchers(settings.bot_handle, settings.vibes_hashtag),
            following_max_pages=settings.following_max_pages,
            page_delay=settings.page_delay_seconds,
            stop_event=stop_event,
        )
        pipeline = IngestionPipeline(
            client,
            coordinator,
            searches=IngestionPipeline.default_searches(
                bot_handle=settings.bot_handle,
                hashtag=settings.vibes_hashtag,
                vibes_window_hours=settings.vibes_window_hours,
                mentions_window_hours=settings.mentions_window_hours,
            ),
            max_pages=settings.search_max_pages,
            page_delay=settings.page_delay_seconds,
            stop_event=stop_event,
        )
        scheduler = IngestionScheduler(
            pipeline.run_once, settings.poll_interval_seconds, stop_event=stop_event
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        LOGGER.info(f"reputest started as @{settings.bot_handle}")
        await scheduler.start()
    finally:
        await http.aclose()
        await db.disconnect()
        LOGGER.info("reputest shut down")


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        asyncio.run(run(settings))
    except ConfigurationError as e:
        LOGGER.error(f"Startup failed: {e}")
        raise SystemExit(1) from e
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")


if __name__ == "__main__":
    main()
