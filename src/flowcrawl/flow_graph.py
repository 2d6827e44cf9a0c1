"""Fold captured nodes into the exported flow chart."""

from typing import Iterable

from flowcrawl.constants import EDGE_LABEL
from flowcrawl.models import ChartEdge, ChartNode, FlowChart, FlowNode
from flowcrawl.urls import identity


def build_flow_chart(nodes: Iterable[FlowNode]) -> FlowChart:
    """Build the flow chart for a list of captured pages.

    Nodes keep capture order. Every node with a parent contributes one edge
    from the parent's id to its own id.
    """
    nodes = list(nodes)
    chart_nodes = tuple(
        ChartNode(id=node.id, label=node.title or node.url, url=node.url, depth=node.depth)
        for node in nodes
    )
    chart_edges = tuple(
        ChartEdge(source=identity(node.parent_url), target=node.id, label=EDGE_LABEL)
        for node in nodes
        if node.parent_url
    )
    return FlowChart(nodes=chart_nodes, edges=chart_edges)
