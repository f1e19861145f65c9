"""
Unit Tests for the Recruitment Hierarchy

Chains resolve through Agent or directly to the Super Agent; malformed
links are refused when they are created.
"""

import threading

import pytest

from pricing_engine.errors import (
    HierarchyCycleError,
    HierarchyResolutionError,
    UnassignedHierarchyError,
    UnknownPartyError,
    ValidationError,
)
from pricing_engine.hierarchy import HierarchyGraph, HierarchyResolver
from pricing_engine.models import HierarchyChain, Role


@pytest.fixture
def graph():
    g = HierarchyGraph()
    g.add_party("sa-1", Role.SUPER_AGENT)
    g.add_party("agent-1", Role.AGENT, "sa-1")
    g.add_party("agent-2", Role.AGENT, "sa-1")
    g.add_party("client-direct", Role.CLIENT, "sa-1")
    g.add_party("client-agent", Role.CLIENT, "agent-1")
    g.add_party("sw-1", Role.SUPER_WORKER)
    g.add_party("worker-1", Role.WORKER, "sw-1")
    return g


@pytest.fixture
def resolver(graph):
    return HierarchyResolver(graph)


class TestClientResolution:

    def test_direct_client(self, resolver):
        chain = resolver.resolve_client("client-direct")
        assert chain == HierarchyChain(client_id="client-direct", super_agent_id="sa-1")
        assert not chain.routes_through_agent

    def test_agent_routed_client(self, resolver):
        chain = resolver.resolve_client("client-agent")
        assert chain.agent_id == "agent-1"
        assert chain.super_agent_id == "sa-1"
        assert chain.routes_through_agent

    def test_client_without_parent(self, graph, resolver):
        graph.add_party("orphan", Role.CLIENT)
        with pytest.raises(UnassignedHierarchyError):
            resolver.resolve_client("orphan")

    def test_agent_without_super_agent(self, graph, resolver):
        graph.add_party("lone-agent", Role.AGENT)
        graph.add_party("client-x", Role.CLIENT, "lone-agent")
        with pytest.raises(UnassignedHierarchyError, match="no super agent"):
            resolver.resolve_client("client-x")

    def test_non_client_cannot_be_quoted(self, resolver):
        with pytest.raises(HierarchyResolutionError):
            resolver.resolve_client("agent-1")

    def test_unknown_party(self, resolver):
        with pytest.raises(UnknownPartyError):
            resolver.resolve_client("nobody")


class TestWorkerResolution:

    def test_sub_worker_resolves_to_super_worker(self, resolver):
        assert resolver.resolve_worker("worker-1") == ("sw-1", "worker-1")

    def test_super_worker_works_directly(self, resolver):
        assert resolver.resolve_worker("sw-1") == ("sw-1", None)

    def test_worker_without_super_worker(self, graph, resolver):
        graph.add_party("free-worker", Role.WORKER)
        with pytest.raises(UnassignedHierarchyError):
            resolver.resolve_worker("free-worker")

    def test_full_chain(self, resolver):
        chain = resolver.resolve_chain("client-agent", "worker-1")
        assert chain.to_dict() == {
            "client_id": "client-agent",
            "super_agent_id": "sa-1",
            "agent_id": "agent-1",
            "super_worker_id": "sw-1",
            "worker_id": "worker-1",
        }


class TestGraphIntegrity:

    def test_duplicate_party(self, graph):
        with pytest.raises(ValidationError, match="already registered"):
            graph.add_party("sa-1", Role.SUPER_AGENT)

    @pytest.mark.parametrize("role,parent", [
        (Role.AGENT, "agent-1"),
        (Role.CLIENT, "sw-1"),
        (Role.WORKER, "sa-1"),
        (Role.SUPER_AGENT, "sa-1"),
    ])
    def test_role_pairing(self, graph, role, parent):
        with pytest.raises(ValidationError, match="cannot be placed under"):
            graph.add_party("new-party", role, parent)

    def test_unknown_parent(self, graph):
        with pytest.raises(UnknownPartyError):
            graph.add_party("client-y", Role.CLIENT, "missing")

    def test_self_parent_rejected(self, graph):
        with pytest.raises(HierarchyCycleError):
            graph.reparent("agent-1", "agent-1")

    def test_reparent_moves_client(self, graph, resolver):
        graph.reparent("client-agent", "agent-2")
        assert resolver.resolve_client("client-agent").agent_id == "agent-2"

    def test_reparent_checks_roles(self, graph):
        with pytest.raises(ValidationError):
            graph.reparent("client-agent", "sw-1")

    def test_failed_insert_leaves_graph_unchanged(self, graph):
        before = len(graph)
        with pytest.raises(ValidationError):
            graph.add_party("bad", Role.WORKER, "sa-1")
        assert len(graph) == before
        assert "bad" not in graph


class TestStats:

    def test_super_agent_network(self, graph):
        stats = graph.stats("sa-1")
        assert stats["direct_subordinates"] == 3
        assert stats["total_network_size"] == 4
        assert stats["recruited_by_role"]["agent"] == 2
        assert stats["recruited_by_role"]["client"] == 1

    def test_leaf_has_empty_network(self, graph):
        stats = graph.stats("client-agent")
        assert stats["direct_subordinates"] == 0
        assert stats["total_network_size"] == 0

    @pytest.mark.parametrize("method", ["children", "descendants"])
    def test_reads_wait_for_writers(self, graph, method):
        """A traversal does not run while another thread holds the graph lock."""
        locked = threading.Event()
        release = threading.Event()
        result = []

        def writer():
            with graph._lock:
                locked.set()
                release.wait(5)

        def reader():
            result.append(getattr(graph, method)("sa-1"))

        holder = threading.Thread(target=writer)
        holder.start()
        locked.wait(5)
        traversal = threading.Thread(target=reader)
        traversal.start()
        try:
            traversal.join(0.2)
            assert traversal.is_alive()
            assert result == []
        finally:
            release.set()
            holder.join()
            traversal.join(5)

        assert len(result) == 1
