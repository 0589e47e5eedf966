from __future__ import annotations

import logging

from webstack.graph.model import ConstructGraph, Node
from webstack.graph.resources import ApiResource, CorsOptions

logger = logging.getLogger(__name__)


def split_segments(path: str) -> list[str]:
    return [seg for seg in path.split("/") if seg]


def resolve_resource(graph: ConstructGraph, root: Node, path: str, cors: CorsOptions) -> Node:
    """
    Return the routing node for ``path`` below ``root``, creating missing segments.

    Existing nodes are reused by exact segment name, so the same path always
    resolves to the same node. New nodes get ``cors`` as their preflight
    policy. A path without segments resolves to ``root``.
    """
    current = root
    prefix = ""

    for segment in split_segments(path):
        prefix = f"{prefix}/{segment}"
        existing = graph.child(current, segment, "api_resource")
        if existing is not None:
            current = existing
            continue

        current = graph.add(
            current,
            segment,
            "api_resource",
            ApiResource(path_part=segment, path=prefix, cors=cors),
        )
        logger.debug("created routing node %s", prefix)

    return current
