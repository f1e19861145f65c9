"""
Recruitment Hierarchy

The hierarchy is an arena of indexed nodes whose parent links are integer
indexes into the same arena. Links are validated (role pairing, no cycles)
whenever they are created or changed, so resolution never has to guard
against a malformed tree.

    Super Agent -> Agent -> Client
    Super Agent -> Client
    Super Worker -> Worker
"""

import logging
import threading
from dataclasses import dataclass

from .errors import (
    HierarchyCycleError,
    HierarchyResolutionError,
    UnassignedHierarchyError,
    UnknownPartyError,
    ValidationError,
)
from .models import HierarchyChain, Role, require_every_role

logger = logging.getLogger(__name__)

ALLOWED_PARENT_ROLES = require_every_role(
    {
        Role.SUPER_AGENT: frozenset(),
        Role.AGENT: frozenset({Role.SUPER_AGENT}),
        Role.CLIENT: frozenset({Role.AGENT, Role.SUPER_AGENT}),
        Role.SUPER_WORKER: frozenset(),
        Role.WORKER: frozenset({Role.SUPER_WORKER}),
    },
    "ALLOWED_PARENT_ROLES",
)


@dataclass
class PartyNode:
    index: int
    party_id: str
    role: Role
    parent: int | None = None


class HierarchyGraph:
    """Arena of parties and their parent links."""

    def __init__(self):
        self._nodes: list[PartyNode] = []
        self._by_id: dict[str, int] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, party_id: str) -> bool:
        return party_id in self._by_id

    def node(self, party_id: str) -> PartyNode:
        try:
            return self._nodes[self._by_id[party_id]]
        except KeyError:
            raise UnknownPartyError(f"Unknown party: {party_id}") from None

    def parent_of(self, node: PartyNode) -> PartyNode | None:
        return self._nodes[node.parent] if node.parent is not None else None

    def add_party(self, party_id: str, role: Role, parent_id: str | None = None) -> PartyNode:
        """Register a party, optionally linked to an existing parent."""
        with self._lock:
            if party_id in self._by_id:
                raise ValidationError(f"Party {party_id} is already registered")

            parent_index = None
            if parent_id is not None:
                parent = self.node(parent_id)
                self._check_parent_role(role, parent)
                parent_index = parent.index

            node = PartyNode(index=len(self._nodes), party_id=party_id, role=role, parent=parent_index)
            self._nodes.append(node)
            self._by_id[party_id] = node.index

        logger.info(f"Registered {role.value} {party_id} under {parent_id or 'no parent'}")
        return node

    def reparent(self, party_id: str, new_parent_id: str) -> PartyNode:
        """Move a party under a new parent (reassignment)."""
        with self._lock:
            node = self.node(party_id)
            parent = self.node(new_parent_id)

            if node.index == parent.index:
                raise HierarchyCycleError(f"Party {party_id} cannot be its own parent")
            self._check_parent_role(node.role, parent)
            if node.index in self._ancestor_indexes(parent.index):
                raise HierarchyCycleError(
                    f"Moving {party_id} under {new_parent_id} would create a circular hierarchy"
                )

            node.parent = parent.index

        logger.info(f"Moved {node.role.value} {party_id} under {new_parent_id}")
        return node

    def children(self, party_id: str) -> list[PartyNode]:
        with self._lock:
            index = self.node(party_id).index
            return [n for n in self._nodes if n.parent == index]

    def descendants(self, party_id: str) -> list[PartyNode]:
        with self._lock:
            found = []
            frontier = [self.node(party_id).index]
            while frontier:
                current = frontier.pop()
                for n in self._nodes:
                    if n.parent == current:
                        found.append(n)
                        frontier.append(n.index)
            return found

    def stats(self, party_id: str) -> dict:
        """Direct recruits by role and total network size."""
        direct = self.children(party_id)
        by_role = {role.value: 0 for role in Role}
        for child in direct:
            by_role[child.role.value] += 1
        return {
            "party_id": party_id,
            "direct_subordinates": len(direct),
            "total_network_size": len(self.descendants(party_id)),
            "recruited_by_role": by_role,
        }

    def _ancestor_indexes(self, index: int) -> list[int]:
        ancestors = []
        current = self._nodes[index].parent
        while current is not None:
            if current in ancestors or len(ancestors) > len(self._nodes):
                raise HierarchyCycleError(f"Hierarchy above {self._nodes[index].party_id} is cyclic")
            ancestors.append(current)
            current = self._nodes[current].parent
        return ancestors

    @staticmethod
    def _check_parent_role(role: Role, parent: PartyNode) -> None:
        allowed = ALLOWED_PARENT_ROLES[role]
        if parent.role not in allowed:
            raise ValidationError(
                f"A {role.value} cannot be placed under a {parent.role.value}"
            )


class HierarchyResolver:
    """Turns client/worker identities into the chain of paid parties."""

    def __init__(self, graph: HierarchyGraph):
        self.graph = graph

    def resolve_client(self, client_id: str) -> HierarchyChain:
        """
        Resolve the client side of a chain.

        Client -> Super Agent: direct, priced on the fixed table.
        Client -> Agent -> Super Agent: priced on the Agent's table.
        """
        client = self.graph.node(client_id)
        if client.role is not Role.CLIENT:
            raise HierarchyResolutionError(f"{client_id} is a {client.role.value}, not a client")

        parent = self.graph.parent_of(client)
        if parent is None:
            raise UnassignedHierarchyError(f"Client {client_id} is not assigned to an agent or super agent")

        if parent.role is Role.SUPER_AGENT:
            return HierarchyChain(client_id=client_id, super_agent_id=parent.party_id)

        super_agent = self.graph.parent_of(parent)
        if super_agent is None or super_agent.role is not Role.SUPER_AGENT:
            raise UnassignedHierarchyError(
                f"Agent {parent.party_id} of client {client_id} has no super agent"
            )
        return HierarchyChain(
            client_id=client_id,
            super_agent_id=super_agent.party_id,
            agent_id=parent.party_id,
        )

    def resolve_worker(self, worker_id: str) -> tuple[str, str | None]:
        """Return (super_worker_id, sub_worker_id or None)."""
        node = self.graph.node(worker_id)
        if node.role is Role.SUPER_WORKER:
            return node.party_id, None
        if node.role is not Role.WORKER:
            raise HierarchyResolutionError(f"{worker_id} is a {node.role.value}, not a worker")

        parent = self.graph.parent_of(node)
        if parent is None:
            raise UnassignedHierarchyError(f"Worker {worker_id} is not assigned to a super worker")
        return parent.party_id, node.party_id

    def resolve_chain(self, client_id: str, worker_id: str) -> HierarchyChain:
        super_worker_id, sub_worker_id = self.resolve_worker(worker_id)
        return self.resolve_client(client_id).with_worker_side(super_worker_id, sub_worker_id)
