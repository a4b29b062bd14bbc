import pytest
import sqlite3
from pathlib import Path
from typing import List

from storage_migrator.core import MigrationOrchestrator
from storage_migrator.database.schema import init_schema
from storage_migrator.database.ops import DBOperations
from storage_migrator.models import Endpoint, ResourceKind, TransferResult
from storage_migrator.reconcile import ConfirmationProvider, Reconciler
from storage_migrator.remote.memory import InMemoryListingClient

SOURCE = Endpoint("srcacct", "sv=2024&sig=source-secret")
DEST = Endpoint("dstacct", "sv=2024&sig=dest-secret")


class ScriptedConfirmation(ConfirmationProvider):
    """Replays canned answers and remembers the prompts it saw."""

    def __init__(self, *answers: bool):
        self.answers = list(answers)
        self.prompts: List[str] = []

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answers.pop(0)


class FakeInvoker:
    """
    Stands in for TransferInvoker. Optionally copies objects in the
    in-memory client so post-transfer listings see them.
    """

    def __init__(self, client: InMemoryListingClient, exit_code: int = 0, interrupted: bool = False,
                 mutate=None):
        self.client = client
        self.exit_code = exit_code
        self.interrupted = interrupted
        self.mutate = mutate
        self.calls = []

    def transfer(self, source_url, dest_url, kind, log_dir: Path) -> TransferResult:
        self.calls.append((source_url, dest_url, kind, log_dir))
        if self.interrupted:
            return TransferResult(exit_code=None, succeeded=False, interrupted=True)
        if self.exit_code != 0:
            return TransferResult(exit_code=self.exit_code, succeeded=False)

        name = source_url.split("?")[0].rsplit("/", 1)[-1]
        objects = self.client.objects(SOURCE.account, kind, name)
        if self.mutate:
            objects = self.mutate(objects)
        self.client.set_objects(DEST.account, kind, name, objects)
        return TransferResult(exit_code=0, succeeded=True)


@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()

@pytest.fixture
def db_ops(conn):
    """Returns a DBOperations instance attached to the in-memory DB."""
    return DBOperations(conn)

@pytest.fixture
def client():
    return InMemoryListingClient()

@pytest.fixture
def make_orchestrator(client, tmp_path):
    """Builds an orchestrator around the in-memory client with scripted pieces."""
    def _make(invoker=None, confirmation=None, db_ops=None):
        invoker = invoker or FakeInvoker(client)
        confirmation = confirmation or ScriptedConfirmation(True)
        orch = MigrationOrchestrator(
            client=client,
            reconciler=Reconciler(client, confirmation),
            invoker=invoker,
            log_root=tmp_path / "logs",
            db_ops=db_ops,
        )
        return orch, invoker
    return _make

@pytest.fixture
def container_job(make_orchestrator):
    orch, _ = make_orchestrator()
    return orch.new_job("photos", ResourceKind.CONTAINER, SOURCE, DEST)
