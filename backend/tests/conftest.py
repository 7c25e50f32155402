# backend/tests/conftest.py

import asyncio
import copy
import os

import pytest
from fastapi.testclient import TestClient
from dotenv import load_dotenv
from unittest.mock import AsyncMock

# Load environment variables FIRST, before any botengine imports, so that
# Settings() sees the test environment.
os.environ.setdefault("ENVIRONMENT", "test")
load_dotenv(dotenv_path="backend/.env.test")

from botengine.main import app  # noqa: E402
from botengine.services.bot_engine import BotEngineService  # noqa: E402

TENANT = "tenant-1"
USER = "5511999990000"


class InMemoryStore:
    """
    Stand-in for DatabaseService with the same method surface.

    try_lock_session and insert_session do their check and write without an
    await in between, which is what makes them atomic on a single event loop,
    the way the real conditional update is atomic on the server.
    """

    def __init__(self):
        self.sessions = {}
        self.configs = {}
        self.menus = {}
        self.flows = []
        self.nodes = []
        self.edges = []
        self.logs = []
        self.fail_on = set()

    # --- seeding helpers ---

    def add_config(self, tenant_id=TENANT, **fields):
        self.configs[tenant_id] = {"tenant_id": tenant_id, "is_enabled": True, **fields}

    def add_menu(self, menu_key, options, tenant_id=TENANT, **fields):
        self.menus[(tenant_id, menu_key)] = {
            "tenant_id": tenant_id, "menu_key": menu_key, "title": fields.pop("title", menu_key),
            "options": options, **fields,
        }

    def add_flow(self, flow_id, nodes, edges, tenant_id=TENANT, priority=0, is_active=True):
        self.flows.append({"id": flow_id, "tenant_id": tenant_id, "priority": priority, "is_active": is_active})
        self.nodes.extend({"flow_id": flow_id, **n} for n in nodes)
        self.edges.extend({"flow_id": flow_id, **e} for e in edges)

    def put_session(self, tenant_id=TENANT, user_id=USER, **fields):
        doc = {
            "tenant_id": tenant_id, "user_id": user_id, "state": "START", "previous_state": "START",
            "stack": [], "locked": False, "context": {},
        }
        doc.update(fields)
        self.sessions[(tenant_id, user_id)] = doc
        return doc

    def session(self, tenant_id=TENANT, user_id=USER):
        return self.sessions.get((tenant_id, user_id))

    def _check(self, name):
        if name in self.fail_on:
            raise RuntimeError(f"simulated {name} failure")

    # --- DatabaseService surface ---

    async def get_bot_config(self, tenant_id):
        return copy.deepcopy(self.configs.get(tenant_id))

    async def get_session(self, tenant_id, user_id):
        self._check("get_session")
        await asyncio.sleep(0)
        return copy.deepcopy(self.sessions.get((tenant_id, user_id)))

    async def insert_session(self, session):
        self._check("insert_session")
        await asyncio.sleep(0)
        key = (session["tenant_id"], session["user_id"])
        if key in self.sessions:
            return False
        self.sessions[key] = copy.deepcopy(session)
        return True

    async def try_lock_session(self, tenant_id, user_id, now, cutoff):
        self._check("try_lock_session")
        await asyncio.sleep(0)
        doc = self.sessions.get((tenant_id, user_id))
        if doc is None:
            return False
        updated_at = doc.get("updated_at")
        stale = updated_at is not None and updated_at < cutoff
        if doc.get("locked") and not stale:
            return False
        doc.update(locked=True, updated_at=now, last_interaction=now)
        return True

    async def unlock_session(self, tenant_id, user_id):
        self._check("unlock_session")
        doc = self.sessions.get((tenant_id, user_id))
        if doc is not None:
            doc["locked"] = False

    async def update_session_state(self, tenant_id, user_id, state, stack):
        self._check("update_session_state")
        doc = self.sessions[(tenant_id, user_id)]
        if doc.get("state") != state:
            doc["previous_state"] = doc.get("state")
        doc["state"] = state
        doc["stack"] = list(stack)

    async def reset_session(self, tenant_id, user_id):
        doc = self.sessions.get((tenant_id, user_id))
        if doc is None:
            return False
        doc.update(state="START", previous_state="START", stack=[], locked=False)
        return True

    async def get_menu_by_key(self, tenant_id, menu_key):
        self._check("get_menu")
        menu = self.menus.get((tenant_id, menu_key))
        return copy.deepcopy(menu) if menu and menu.get("is_active", True) else None

    async def get_root_menu(self, tenant_id):
        for (t, _), menu in self.menus.items():
            if t == tenant_id and menu.get("is_root") and menu.get("is_active", True):
                return copy.deepcopy(menu)
        return None

    async def get_active_flows(self, tenant_id):
        flows = [f for f in self.flows if f["tenant_id"] == tenant_id and f["is_active"]]
        return copy.deepcopy(sorted(flows, key=lambda f: f["priority"], reverse=True))

    async def get_flow_nodes(self, flow_id):
        return copy.deepcopy([n for n in self.nodes if n["flow_id"] == flow_id])

    async def get_edges_from(self, node_id):
        edges = [e for e in self.edges if e["source_node_id"] == node_id]
        return copy.deepcopy(sorted(edges, key=lambda e: e.get("priority", 0), reverse=True))

    async def append_bot_log(self, tenant_id, user_id, message, from_user):
        self.logs.append({"tenant_id": tenant_id, "user_id": user_id, "message": message, "from_user": from_user})

    async def get_bot_logs(self, tenant_id, user_id, limit=50):
        lines = [l for l in self.logs if l["tenant_id"] == tenant_id and l["user_id"] == user_id]
        return copy.deepcopy(lines[-limit:])


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def engine(store):
    """A BotEngineService wired to the in-memory store, with caching off."""
    return BotEngineService(store=store, cache=None)


@pytest.fixture(scope="function")
def test_client(mocker):
    """
    Provides a TestClient for API integration tests.
    Startup index creation and connection teardown are stubbed out.
    """
    mocker.patch("botengine.utils.lifecycle.db_service.create_indexes", new_callable=AsyncMock)
    mocker.patch("botengine.utils.lifecycle.cache_service.close", new_callable=AsyncMock)

    # The app's lifespan (startup/shutdown events) is managed by the TestClient
    with TestClient(app) as client:
        yield client
