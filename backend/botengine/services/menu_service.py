# /botengine/services/menu_service.py

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from botengine.config.settings import settings
from botengine.models.menu import DynamicMenu
from botengine.models.session import START_STATE
from botengine.services.cache_service import cache_service
from botengine.services.db_service import db_service

logger = logging.getLogger(__name__)

# Parent chains longer than this are treated as misconfigured.
MAX_BREADCRUMB_DEPTH = 20


class MenuService:
    """Loads tenant menus from the store; rendering and matching live in botengine.workflows.menus."""

    def __init__(self, store=db_service, cache=cache_service):
        self.store = store
        self.cache = cache

    async def _fetch(self, cache_key: str, fetch_func) -> Optional[Dict[str, Any]]:
        if self.cache is None:
            return await fetch_func()
        return await self.cache.get_or_set(cache_key, fetch_func, ttl=settings.bot_menu_cache_ttl_seconds)

    def _to_menu(self, data: Optional[Dict[str, Any]]) -> Optional[DynamicMenu]:
        if not data:
            return None
        try:
            return DynamicMenu(**data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed menu '{data.get('menu_key')}' for tenant {data.get('tenant_id')}: {e}")
            return None

    async def load_menu(self, tenant_id: str, menu_key: str) -> Optional[DynamicMenu]:
        data = await self._fetch(
            f"bot_engine:menu:{tenant_id}:{menu_key}",
            lambda: self.store.get_menu_by_key(tenant_id, menu_key),
        )
        return self._to_menu(data)

    async def load_root_menu(self, tenant_id: str) -> Optional[DynamicMenu]:
        data = await self._fetch(
            f"bot_engine:menu:{tenant_id}:__root__",
            lambda: self.store.get_root_menu(tenant_id),
        )
        return self._to_menu(data)

    async def menu_for_state(self, tenant_id: str, state: str, main_menu_key: Optional[str] = None) -> Optional[DynamicMenu]:
        """
        The dynamic menu shown at `state`.

        A menu keyed by the state itself wins. START and the tenant's main
        menu key fall back to the menu flagged as root.
        """
        menu = await self.load_menu(tenant_id, state)
        if menu is not None:
            return menu
        if state == START_STATE or (main_menu_key and state == main_menu_key):
            return await self.load_root_menu(tenant_id)
        return None

    async def breadcrumb(self, tenant_id: str, menu_key: str) -> List[str]:
        """Menu keys from the top-level ancestor down to `menu_key`."""
        trail: List[str] = []
        seen = set()
        key: Optional[str] = menu_key
        while key and key not in seen and len(trail) < MAX_BREADCRUMB_DEPTH:
            seen.add(key)
            trail.append(key)
            menu = await self.load_menu(tenant_id, key)
            key = menu.parent_menu_key if menu else None
        trail.reverse()
        return trail


menu_service = MenuService()
