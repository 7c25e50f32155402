# /botengine/services/flow_service.py

import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from botengine.models.flow import BotFlow, FlowEdge, FlowNode, FlowTransition
from botengine.models.session import START_STATE
from botengine.services.db_service import db_service
from botengine.workflows.flows import find_node_for_state, node_state_name, select_edge
from botengine.workflows.parser import ParsedInput
from botengine.workflows.validator import validate_edge

logger = logging.getLogger(__name__)


class FlowService:
    """Fallback resolution over the tenant's node/edge flow graph."""

    def __init__(self, store=db_service):
        self.store = store

    async def _primary_flow(self, tenant_id: str) -> Optional[Tuple[BotFlow, List[FlowNode]]]:
        """Highest-priority active flow and its nodes, or None when the tenant has none."""
        flows = await self.store.get_active_flows(tenant_id)
        if not flows:
            return None
        try:
            flow = BotFlow(**flows[0])
            nodes = [FlowNode(**doc) for doc in await self.store.get_flow_nodes(flow.id)]
        except ValidationError as e:
            logger.warning(f"Ignoring malformed flow for tenant {tenant_id}: {e}")
            return None
        return flow, nodes

    async def resolve_flow(
        self,
        tenant_id: str,
        current_state: str,
        parsed: ParsedInput,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[FlowTransition]:
        """
        Follow the first satisfied outgoing edge of the node at `current_state`.

        Returns:
            FlowTransition, or None when there is no flow, no node for the
            state, or no edge whose condition holds
        """
        primary = await self._primary_flow(tenant_id)
        if primary is None:
            return None
        flow, nodes = primary

        node = find_node_for_state(nodes, current_state)
        if node is None:
            return None

        edges: List[FlowEdge] = []
        for doc in await self.store.get_edges_from(node.id):
            try:
                edge = FlowEdge(**doc)
            except ValidationError as e:
                logger.warning(f"Skipping malformed edge in flow {flow.id}: {e}")
                continue
            check = validate_edge(edge)
            if not check["is_valid"]:
                # Still evaluated: a bad condition simply never matches.
                logger.warning(f"Flow {flow.id}: {check['message']}")
            edges.append(edge)

        edge = select_edge(edges, parsed, context)
        if edge is None:
            return None

        target = next((n for n in nodes if n.id == edge.target_node_id), None)
        if target is None:
            logger.warning(f"Edge {edge.id} in flow {flow.id} points at missing node {edge.target_node_id}")
            return None

        return FlowTransition(
            new_state=node_state_name(target),
            message=target.message,
            push_to_stack=current_state != START_STATE,
            node_id=target.id,
        )

    async def state_message(self, tenant_id: str, state: str) -> Optional[str]:
        """Message of the node that represents `state` in the primary flow."""
        primary = await self._primary_flow(tenant_id)
        if primary is None:
            return None
        _, nodes = primary
        node = find_node_for_state(nodes, state)
        return node.message if node else None

