"""Tests for the depth-first render walk."""

from __future__ import annotations

from issuegraph.graph.builder import IssueGraph
from issuegraph.graph.IssueNode import IssueNode
from issuegraph.graph.relations import Edge, EdgeKind
from issuegraph.graph.render import OmittedChildren, render_tree


def _graph(*pairs, kind=EdgeKind.CONTAINMENT):
    graph = IssueGraph()
    for parent, child in pairs:
        graph.add_edge(Edge(parent, child, kind))
    for key in graph.referenced_keys():
        graph.register(IssueNode(key=key, summary=f"Summary of {key}"))
    return graph


class TestRenderOrder:
    """Tests for walk order and depth."""

    def test_depth_first_pre_order(self):
        graph = _graph(("A", "B"), ("B", "D"), ("A", "C"))
        result = render_tree(graph, ["A"])
        assert [(n.key, n.depth) for n in result.nodes()] == [
            ("A", 0),
            ("B", 1),
            ("D", 2),
            ("C", 1),
        ]

    def test_children_keep_discovery_order(self):
        graph = _graph(("P", "A"), ("P", "B"))
        assert render_tree(graph, ["P"]).keys() == ["P", "A", "B"]

    def test_last_sibling_flags(self):
        graph = _graph(("A", "B"), ("B", "D"), ("A", "C"))
        flags = {n.key: n.is_last_sibling for n in render_tree(graph, ["A"]).nodes()}
        assert flags == {"A": True, "B": False, "D": True, "C": True}

    def test_unregistered_key_renders_as_unavailable(self):
        graph = IssueGraph()
        graph.add_edge(Edge("A", "B", EdgeKind.CONTAINMENT))
        graph.register(IssueNode(key="A"))
        nodes = render_tree(graph, ["A"]).nodes()
        assert nodes[1].node is None
        assert nodes[1].unavailable is True


class TestVisitedSet:
    """Tests for deduplication across parents and roots."""

    def test_cycle_visits_each_key_once(self):
        graph = _graph(("A", "B"), ("B", "A"))
        assert render_tree(graph, ["A"]).keys() == ["A", "B"]

    def test_diamond_rendered_under_first_parent(self):
        graph = _graph(("R", "P1"), ("R", "P2"), ("P1", "X"), ("P2", "X"))
        result = render_tree(graph, ["R"])
        assert result.keys() == ["R", "P1", "X", "P2"]
        assert [n.depth for n in result.nodes()] == [0, 1, 2, 1]

    def test_shared_visited_set_across_calls(self):
        graph = _graph(("A", "X"), ("B", "X"), ("B", "Y"))
        visited: set[str] = set()
        first = render_tree(graph, ["A"], visited=visited)
        second = render_tree(graph, ["B"], visited=visited)
        assert first.keys() == ["A", "X"]
        assert second.keys() == ["B", "Y"]

    def test_visited_root_skipped(self):
        graph = _graph(("A", "B"))
        result = render_tree(graph, ["A", "B"])
        assert result.keys() == ["A", "B"]
        assert [n.depth for n in result.nodes()] == [0, 1]

    def test_last_visible_sibling_flagged_when_later_one_skipped(self):
        graph = _graph(("R", "A"), ("A", "X"), ("R", "B"), ("R", "X"))
        flags = {n.key: n.is_last_sibling for n in render_tree(graph, ["R"]).nodes()}
        assert flags["B"] is True


class TestLimits:
    """Tests for the child limit and depth bound."""

    def test_child_limit_emits_omission_marker(self):
        graph = _graph(*[("P", f"C{i}") for i in range(5)])
        result = render_tree(graph, ["P"], child_limit=3)
        assert result.keys() == ["P", "C0", "C1", "C2"]
        assert result.omitted() == [OmittedChildren("P", 1, 2)]
        assert isinstance(result.entries[-1], OmittedChildren)

    def test_child_limit_zero_disables_limit(self):
        graph = _graph(*[("P", f"C{i}") for i in range(25)])
        assert len(render_tree(graph, ["P"], child_limit=0).nodes()) == 26

    def test_default_child_limit(self):
        graph = _graph(*[("P", f"C{i}") for i in range(25)])
        result = render_tree(graph, ["P"])
        assert len(result.nodes()) == 21
        assert result.omitted()[0].count == 5

    def test_max_depth_stops_expansion(self):
        graph = _graph(("A", "B"), ("B", "C"))
        result = render_tree(graph, ["A"], max_depth=1)
        assert result.keys() == ["A", "B"]
        assert result.depth_limit_reached is True

    def test_max_depth_not_reached(self):
        graph = _graph(("A", "B"))
        result = render_tree(graph, ["A"], max_depth=1)
        assert result.depth_limit_reached is False
