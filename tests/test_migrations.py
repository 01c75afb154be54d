from contextlib import asynccontextmanager

from shared.migrations.runner import VERSIONS_DIR, MigrationRunner


class FakeConnection:
    def __init__(self, applied: set[str]) -> None:
        self.applied = applied
        self.executed: list[str] = []

    async def execute(self, query: str, *args):
        self.executed.append(query)
        if query.startswith("INSERT INTO schema_migrations"):
            self.applied.add(args[0])

    async def fetch(self, query: str, *args):
        return [{"version": v} for v in sorted(self.applied)]

    @asynccontextmanager
    async def transaction(self):
        yield


class FakePool:
    def __init__(self, applied: set[str] | None = None) -> None:
        self.conn = FakeConnection(applied or set())

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


def test_initial_schema_ships_with_package():
    names = [p.name for p in sorted(VERSIONS_DIR.glob("*.sql"))]
    assert names[0] == "000_initial_schema.sql"
    sql = (VERSIONS_DIR / names[0]).read_text()
    for table in ("access_tokens", "refresh_tokens", "users", "good_vibes", "megajoules", "following", "processed_requests"):
        assert f"CREATE TABLE IF NOT EXISTS {table}" in sql


async def test_pending_migrations_are_applied_once():
    pool = FakePool()
    runner = MigrationRunner(pool)

    assert await runner.run_pending() == ["000_initial_schema"]
    assert await runner.run_pending() == []
    assert await runner.pending() == []


async def test_runner_holds_advisory_lock():
    pool = FakePool()
    await MigrationRunner(pool).run_pending()

    executed = pool.conn.executed
    assert executed[0].startswith("SELECT pg_advisory_lock")
    assert executed[-1].startswith("SELECT pg_advisory_unlock")
