# /botengine/services/db_service.py

import logging
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any

from botengine.config.settings import settings
from botengine.models.session import START_STATE
from botengine.utils.circuit_breaker import CircuitBreaker
from botengine.utils.metrics import database_operations_counter

logger = logging.getLogger(__name__)

# Constants
BOT_LOG_MESSAGE_MAX = 4000

# Fields that are never returned from the session collection.
_SESSION_PROJECTION = {"_id": 0}


class DatabaseService:
    """
    Manages all interactions with MongoDB for the bot engine: the session
    store, tenant menus and flow graphs, tenant configuration and the
    conversation transcript.

    Session mutations raise on failure so the orchestrator can abort the pass;
    transcript writes and configuration reads are best-effort.
    """

    def __init__(self, mongo_uri: str):
        try:
            self.client = AsyncIOMotorClient(
                mongo_uri,
                maxPoolSize=settings.max_pool_size,
                minPoolSize=settings.min_pool_size,
                tls=settings.mongo_ssl,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000
            )
            self.db = self.client.get_default_database()
            self.circuit_breaker = CircuitBreaker("database")
            logger.info("MongoDB client initialized successfully.")
        except Exception as e:
            logger.error(f"Error initializing MongoDB client: {e}")
            raise

    # ==================== Helper Methods ====================

    async def _safe_db_operation(
        self,
        operation,
        use_circuit_breaker: bool = True,
        default_return: Any = None
    ) -> Any:
        """
        Execute a best-effort database operation.

        Args:
            operation: Async callable to execute
            use_circuit_breaker: Whether to use circuit breaker
            default_return: Value to return on failure

        Returns:
            Operation result or default_return on failure
        """
        try:
            if use_circuit_breaker:
                return await self.circuit_breaker.call(operation)
            return await operation()
        except Exception as e:
            logger.exception(f"Database operation failed: {type(e).__name__}")
            database_operations_counter.labels(operation="db_error", status="failed").inc()
            return default_return

    async def _guarded(self, name: str, operation) -> Any:
        """Run `operation` through the circuit breaker, counting the outcome and re-raising errors."""
        try:
            result = await self.circuit_breaker.call(operation)
        except Exception:
            database_operations_counter.labels(operation=name, status="failed").inc()
            raise
        database_operations_counter.labels(operation=name, status="success").inc()
        return result

    def _now_utc(self) -> datetime:
        return datetime.now(timezone.utc)

    # ==================== Index Management ====================

    async def create_indexes(self) -> None:
        """Create all necessary database indexes on startup."""
        indexes = [
            ("bot_sessions", [("tenant_id", 1), ("user_id", 1)], {"unique": True}),
            ("bot_sessions", [("tenant_id", 1), ("updated_at", -1)], {}),
            ("bot_menus", [("tenant_id", 1), ("menu_key", 1)], {"unique": True}),
            ("bot_menus", [("tenant_id", 1), ("is_root", 1)], {}),
            ("bot_flows", [("tenant_id", 1), ("is_active", 1), ("priority", -1)], {}),
            ("bot_nodes", [("flow_id", 1)], {}),
            ("bot_edges", [("source_node_id", 1), ("priority", -1)], {}),
            ("bot_logs", [("tenant_id", 1), ("user_id", 1), ("created_at", -1)], {}),
            ("bot_engine_config", [("tenant_id", 1)], {"unique": True}),
        ]

        for collection, keys, options in indexes:
            try:
                await self.db[collection].create_index(keys, **options)
                logger.debug(f"Created index on {collection}: {keys}")
            except Exception as e:
                logger.error(f"Failed to create index on {collection} {keys}: {e}")

        logger.info("Database indexes created successfully.")

    async def health_check(self) -> bool:
        """
        Check MongoDB connection health.

        Returns:
            True if connection is healthy
        """
        try:
            await self.client.admin.command('ping')
            return True
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return False

    # ==================== Tenant Configuration ====================

    async def get_bot_config(self, tenant_id: str) -> Optional[Dict[str, Any]]:
        """Fetch the tenant's bot_engine_config document, or None when absent or unreadable."""
        return await self._safe_db_operation(
            lambda: self.db.bot_engine_config.find_one({"tenant_id": tenant_id}, {"_id": 0})
        )

    # ==================== Session Store ====================

    async def get_session(self, tenant_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return await self._guarded(
            "get_session",
            lambda: self.db.bot_sessions.find_one(
                {"tenant_id": tenant_id, "user_id": user_id}, _SESSION_PROJECTION
            )
        )

    async def insert_session(self, session: Dict[str, Any]) -> bool:
        """
        Insert a session if none exists for its (tenant_id, user_id).

        Returns:
            False when another caller created the session first
        """
        try:
            await self._guarded("insert_session", lambda: self.db.bot_sessions.insert_one(dict(session)))
            return True
        except DuplicateKeyError:
            return False

    async def try_lock_session(self, tenant_id: str, user_id: str, now: datetime, cutoff: datetime) -> bool:
        """
        Atomically take the session lock.

        Matches only when the session is unlocked or its lock is older than
        `cutoff`; the match and the write happen in a single server-side
        operation, so concurrent callers cannot both succeed.
        """
        result = await self._guarded(
            "try_lock_session",
            lambda: self.db.bot_sessions.find_one_and_update(
                {
                    "tenant_id": tenant_id,
                    "user_id": user_id,
                    "$or": [{"locked": False}, {"updated_at": {"$lt": cutoff}}],
                },
                {"$set": {"locked": True, "updated_at": now, "last_interaction": now}},
                projection={"_id": 1},
                return_document=ReturnDocument.AFTER,
            )
        )
        return result is not None

    async def unlock_session(self, tenant_id: str, user_id: str) -> None:
        await self._guarded(
            "unlock_session",
            lambda: self.db.bot_sessions.update_one(
                {"tenant_id": tenant_id, "user_id": user_id},
                {"$set": {"locked": False, "updated_at": self._now_utc()}}
            )
        )

    async def update_session_state(self, tenant_id: str, user_id: str, state: str, stack: List[str]) -> None:
        """
        Persist a new state and stack.

        previous_state is moved forward in the same pipeline update, and only
        when the state actually changes.
        """
        now = self._now_utc()
        pipeline = [
            {"$set": {
                "previous_state": {
                    "$cond": [
                        {"$ne": ["$state", {"$literal": state}]},
                        "$state",
                        "$previous_state",
                    ]
                },
                "state": {"$literal": state},
                "stack": {"$literal": list(stack)},
                "updated_at": now,
                "last_interaction": now,
            }}
        ]
        await self._guarded(
            "update_session_state",
            lambda: self.db.bot_sessions.update_one({"tenant_id": tenant_id, "user_id": user_id}, pipeline)
        )

    async def reset_session(self, tenant_id: str, user_id: str) -> bool:
        """Send a session back to START with an empty stack and no lock; False if it does not exist."""
        now = self._now_utc()
        result = await self._guarded(
            "reset_session",
            lambda: self.db.bot_sessions.update_one(
                {"tenant_id": tenant_id, "user_id": user_id},
                {"$set": {
                    "state": START_STATE,
                    "previous_state": START_STATE,
                    "stack": [],
                    "locked": False,
                    "updated_at": now,
                }}
            )
        )
        return result.matched_count > 0

    # ==================== Menus ====================

    async def get_menu_by_key(self, tenant_id: str, menu_key: str) -> Optional[Dict[str, Any]]:
        return await self._guarded(
            "get_menu",
            lambda: self.db.bot_menus.find_one(
                {"tenant_id": tenant_id, "menu_key": menu_key, "is_active": {"$ne": False}}, {"_id": 0}
            )
        )

    async def get_root_menu(self, tenant_id: str) -> Optional[Dict[str, Any]]:
        return await self._guarded(
            "get_root_menu",
            lambda: self.db.bot_menus.find_one(
                {"tenant_id": tenant_id, "is_root": True, "is_active": {"$ne": False}}, {"_id": 0}
            )
        )

    # ==================== Flow Graph ====================

    async def get_active_flows(self, tenant_id: str) -> List[Dict[str, Any]]:
        """Active flows for a tenant, highest priority first."""
        cursor = self.db.bot_flows.find(
            {"tenant_id": tenant_id, "is_active": True}, {"_id": 0}
        ).sort("priority", DESCENDING)
        return await self._guarded("get_active_flows", lambda: cursor.to_list(length=None))

    async def get_flow_nodes(self, flow_id: str) -> List[Dict[str, Any]]:
        cursor = self.db.bot_nodes.find({"flow_id": flow_id}, {"_id": 0}).sort("_id", ASCENDING)
        return await self._guarded("get_flow_nodes", lambda: cursor.to_list(length=None))

    async def get_edges_from(self, node_id: str) -> List[Dict[str, Any]]:
        """Outgoing edges of a node, highest priority first."""
        cursor = self.db.bot_edges.find({"source_node_id": node_id}, {"_id": 0}).sort("priority", DESCENDING)
        return await self._guarded("get_edges", lambda: cursor.to_list(length=None))

    # ==================== Transcript ====================

    async def append_bot_log(self, tenant_id: str, user_id: str, message: str, from_user: bool) -> None:
        """Fire-and-forget transcript write; failures are logged and swallowed."""
        await self._safe_db_operation(
            lambda: self.db.bot_logs.insert_one({
                "tenant_id": tenant_id,
                "user_id": user_id,
                "message": (message or "")[:BOT_LOG_MESSAGE_MAX],
                "from_user": from_user,
                "created_at": self._now_utc(),
            })
        )

    async def get_bot_logs(self, tenant_id: str, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Latest transcript lines, oldest first."""
        async def _fetch():
            cursor = self.db.bot_logs.find(
                {"tenant_id": tenant_id, "user_id": user_id}, {"_id": 0}
            ).sort("created_at", DESCENDING).limit(limit)
            docs = await cursor.to_list(length=limit)
            docs.reverse()
            return docs

        return await self._safe_db_operation(_fetch, default_return=[])


# Globally accessible instance
db_service = DatabaseService(settings.mongo_atlas_uri)
