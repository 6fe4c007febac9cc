"""Shared fixtures: a temporary SQLite database and a tool context wired to fakes."""

from typing import Any

import pytest

from fakes import FakeGateway, FakeRetriever
from govverify.agent.context import ToolContext
from govverify.core.database import Database


@pytest.fixture
def db(tmp_path) -> Database:
    database = Database(tmp_path / "govverify.db")
    database.init_db()
    return database


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def make_ctx(db: Database, gateway: FakeGateway):
    def _make(retrieval: FakeRetriever | None = None, **kwargs: Any) -> ToolContext:
        return ToolContext(
            user_phone=kwargs.pop("user_phone", "+23276000001"),
            db=db,
            retrieval=retrieval or FakeRetriever(),
            send_message=gateway.send_message,
            **kwargs,
        )

    return _make
