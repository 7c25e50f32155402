# /botengine/services/bot_engine.py

import re
from typing import Any, Dict, List, NamedTuple, Optional

import structlog
from pydantic import ValidationError

from botengine.config import strings
from botengine.config.settings import settings
from botengine.models.api import InterceptRequest, InterceptResponse
from botengine.models.config import BotEngineConfig
from botengine.models.menu import BotAction, DynamicMenu, SelectionKind
from botengine.models.session import AWAITING_HUMAN_STATE, ENDED_STATE, START_STATE, BotSession
from botengine.services.cache_service import cache_service
from botengine.services.db_service import db_service
from botengine.services.flow_service import FlowService
from botengine.services.lock_service import SessionLockManager
from botengine.services.menu_service import MenuService
from botengine.utils.metrics import intercept_counter, resolution_counter
from botengine.workflows.commands import apply_global_action, match_global
from botengine.workflows.flows import interpolate
from botengine.workflows.menus import render_menu, resolve_selection
from botengine.workflows.parser import ParsedInput, parse_input

log = structlog.get_logger(__name__)

_NON_DIGIT_RE = re.compile(r"\D")


class Resolution(NamedTuple):
    """Outcome of resolving one message against the session's current state."""
    new_state: str
    stack: List[str]
    message: Optional[str]
    source: str


def normalize_user_id(sender_identifier: str) -> str:
    """Phone numbers are keyed by their digits; anything else is kept as given."""
    digits = _NON_DIGIT_RE.sub("", sender_identifier or "")
    return digits or (sender_identifier or "").strip()


class BotEngineService:
    """
    Decides whether an inbound message is handled by the bot engine and, if
    so, what the reply and the next conversation state are.

    Every pass runs under the per-session lock; a pass that cannot take the
    lock, or that fails for any reason, answers with a pass-through so the
    rest of the webhook pipeline still runs.
    """

    def __init__(self, store=db_service, cache=cache_service, locks: SessionLockManager | None = None):
        self.store = store
        self.cache = cache
        self.locks = locks or SessionLockManager(store=store)
        self.menus = MenuService(store=store, cache=cache)
        self.flows = FlowService(store=store)

    # ==================== Configuration ====================

    async def load_config(self, tenant_id: str) -> Optional[BotEngineConfig]:
        """Tenant configuration, read once per pass; None when the tenant has none."""
        if self.cache is None:
            data = await self.store.get_bot_config(tenant_id)
        else:
            data = await self.cache.get_or_set(
                f"bot_engine:config:{tenant_id}",
                lambda: self.store.get_bot_config(tenant_id),
                ttl=settings.bot_config_cache_ttl_seconds,
            )
        if not data:
            return None
        try:
            return BotEngineConfig(**data)
        except ValidationError as e:
            log.warning("Ignoring malformed bot engine config", tenant_id=tenant_id, error=str(e))
            return None

    # ==================== Entry Point ====================

    async def intercept(self, request: InterceptRequest) -> InterceptResponse:
        tenant_id = request.tenant_id.strip()
        user_id = normalize_user_id(request.sender_identifier)
        if not tenant_id or not user_id or not request.message_text.strip():
            intercept_counter.labels(outcome="invalid_input").inc()
            return InterceptResponse.pass_through()

        bound_log = log.bind(tenant_id=tenant_id, user_id=user_id)
        try:
            config = await self.load_config(tenant_id)
            if config is None or not config.is_enabled:
                intercept_counter.labels(outcome="disabled").inc()
                return InterceptResponse.pass_through()

            if not config.is_within_business_hours():
                intercept_counter.labels(outcome="outside_hours").inc()
                bound_log.info("Outside business hours, passing through")
                return InterceptResponse.pass_through()

            async with self.locks.hold(tenant_id, user_id) as acquired:
                if not acquired:
                    intercept_counter.labels(outcome="locked").inc()
                    return InterceptResponse.pass_through()
                return await self._process(config, user_id, request.message_text, bound_log)

        except Exception as e:
            intercept_counter.labels(outcome="error").inc()
            bound_log.error("Bot engine failed, passing through", error=str(e), exc_info=True)
            return InterceptResponse.pass_through(error=str(e))

    # ==================== Processing ====================

    async def _process(self, config: BotEngineConfig, user_id: str, text: str, bound_log) -> InterceptResponse:
        tenant_id = config.tenant_id

        doc = await self.store.get_session(tenant_id, user_id)
        session = BotSession(**doc) if doc else BotSession.fresh(tenant_id, user_id)

        parsed = parse_input(text)
        await self.store.append_bot_log(tenant_id, user_id, text, True)

        if session.is_terminal:
            intercept_counter.labels(outcome="terminal").inc()
            bound_log.info("Session in terminal state, passing through", state=session.state)
            return InterceptResponse.pass_through()

        if parsed.is_command:
            intercept_counter.labels(outcome="command").inc()
            return InterceptResponse.pass_through()

        resolution = await self._resolve(config, session, parsed)
        if resolution is None:
            intercept_counter.labels(outcome="unresolved").inc()
            bound_log.debug("Nothing resolved, passing through", state=session.state)
            return InterceptResponse.pass_through()

        if resolution.new_state != session.state or resolution.stack != session.stack:
            await self.store.update_session_state(tenant_id, user_id, resolution.new_state, resolution.stack)

        variables: Dict[str, Any] = {**config.custom_variables, **session.context}
        message = interpolate(resolution.message, variables)
        if message:
            await self.store.append_bot_log(tenant_id, user_id, message, False)

        resolution_counter.labels(source=resolution.source).inc()
        intercept_counter.labels(outcome="intercepted").inc()
        bound_log.info(
            "Message intercepted",
            source=resolution.source,
            from_state=session.state,
            to_state=resolution.new_state,
        )
        return InterceptResponse(
            intercepted=True,
            response=message,
            new_state=resolution.new_state,
            should_continue=False,
        )

    async def _resolve(self, config: BotEngineConfig, session: BotSession, parsed: ParsedInput) -> Optional[Resolution]:
        """Global commands first, then the dynamic menu at the current state, then the flow graph."""
        action = match_global(parsed, config.disabled_commands)
        if action is not None:
            return await self._navigate(config, session, action, "global")

        menu = await self.menus.menu_for_state(config.tenant_id, session.state, config.main_menu_key)
        if menu is not None:
            return await self._resolve_menu(config, session, menu, parsed)

        transition = await self.flows.resolve_flow(config.tenant_id, session.state, parsed, session.context)
        if transition is None:
            return None
        stack = list(session.stack)
        if transition.push_to_stack:
            stack.append(session.state)
        message = transition.message or await self.display_for_state(config, transition.new_state)
        return Resolution(transition.new_state, stack, message, "flow")

    async def _navigate(self, config: BotEngineConfig, session: BotSession, action: BotAction, source: str) -> Resolution:
        nav = apply_global_action(action, session.state, session.stack, config.main_menu_key)
        message = await self.display_for_state(config, nav["new_state"])
        return Resolution(nav["new_state"], nav["stack"], message, source)

    async def _resolve_menu(
        self,
        config: BotEngineConfig,
        session: BotSession,
        menu: DynamicMenu,
        parsed: ParsedInput,
    ) -> Resolution:
        selection = resolve_selection(menu, parsed)
        state, stack = session.state, list(session.stack)

        if selection.kind == SelectionKind.NONE:
            if session.state != START_STATE:
                return Resolution(state, stack, render_menu(menu, invalid=True), "menu_invalid")
            # First contact at START: greet with the menu.
            return Resolution(state, stack, render_menu(menu), "menu")

        if selection.kind == SelectionKind.SUBMENU:
            target = selection.target_menu
            return Resolution(target, stack + [state], await self.display_for_state(config, target), "menu")

        if selection.kind == SelectionKind.STATE:
            target = selection.target_state
            return Resolution(target, stack + [state], await self.display_for_state(config, target), "menu")

        if selection.kind == SelectionKind.ACTION:
            return await self._navigate(config, session, selection.action, "menu")

        if selection.kind == SelectionKind.MESSAGE:
            return Resolution(state, stack, selection.message, "menu")

        return Resolution(state, stack, strings.LINK_TEMPLATE.format(url=selection.url), "menu")

    async def display_for_state(self, config: BotEngineConfig, state: str) -> Optional[str]:
        """Text shown on arriving at `state`: its menu, else its flow node message."""
        if state == ENDED_STATE:
            return config.session_end_message or strings.SESSION_ENDED_MESSAGE
        if state == AWAITING_HUMAN_STATE:
            return config.human_takeover_message or strings.HUMAN_TAKEOVER_MESSAGE

        menu = await self.menus.menu_for_state(config.tenant_id, state, config.main_menu_key)
        if menu is not None:
            return render_menu(menu)
        return await self.flows.state_message(config.tenant_id, state)


bot_engine_service = BotEngineService()
