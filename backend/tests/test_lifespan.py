import pytest
from pymongo.errors import ServerSelectionTimeoutError

from formadmin import main, registry_main


class FakeClient:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


async def mongo_down(db):
    raise ServerSelectionTimeoutError("localhost:27017: connection refused")


async def test_forms_service_starts_without_mongo(monkeypatch):
    client = FakeClient()
    monkeypatch.setattr(main, "ensure_form_indexes", mongo_down)
    monkeypatch.setattr(main, "client", client)

    async with main.lifespan(main.app):
        pass
    assert client.closed


async def test_registry_refuses_to_start_without_indexes(monkeypatch):
    client = FakeClient()
    monkeypatch.setattr(registry_main, "ensure_registry_indexes", mongo_down)
    monkeypatch.setattr(registry_main, "client", client)

    with pytest.raises(ServerSelectionTimeoutError):
        async with registry_main.lifespan(registry_main.app):
            pass
    assert not client.closed
