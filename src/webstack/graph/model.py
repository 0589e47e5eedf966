from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Literal, Optional


NodeKind = Literal[
    "app",
    "bucket",
    "origin_access_identity",
    "user_pool",
    "user_pool_client",
    "user_pool_group",
    "rest_api",
    "api_resource",
    "api_method",
    "authorizer",
    "log_group",
    "distribution",
    "function",
    "execution_role",
    "queue",
    "dashboard",
    "alarm",
]

# kinds the security audit has a rule for
AuditedKind = Literal[
    "execution_role",
    "distribution",
    "rest_api",
    "bucket",
    "function",
    "user_pool",
]


@dataclass
class Node:
    index: int
    id: str
    kind: NodeKind
    payload: Any
    parent: Optional[int]
    path: str
    children: list[int] = field(default_factory=list)
    detached: bool = False


class ConstructGraph:
    """
    Arena of construct nodes.

    Nodes are addressed by their index and never move. Each node keeps its
    parent index and an ordered list of child indices; a per-kind index is
    maintained as nodes are added so lookups never scan or type-check.
    """

    def __init__(self, root_id: str) -> None:
        self.nodes: list[Node] = []
        self._by_kind: dict[str, list[int]] = {}
        self.root = self._append(Node(index=0, id=root_id, kind="app", payload=None, parent=None, path=root_id))

    def _append(self, node: Node) -> Node:
        self.nodes.append(node)
        self._by_kind.setdefault(node.kind, []).append(node.index)
        return node

    def add(self, parent: Node | int, id: str, kind: NodeKind, payload: Any) -> Node:
        p = self.get(parent)
        if p.detached:
            raise ValueError(f"cannot add {id!r} under detached node {p.path!r}")
        if self.child(p, id, kind) is not None:
            raise ValueError(f"There is already a {kind} named {id!r} in {p.path!r}")

        node = Node(
            index=len(self.nodes),
            id=id,
            kind=kind,
            payload=payload,
            parent=p.index,
            path=f"{p.path}/{id}",
        )
        p.children.append(node.index)
        return self._append(node)

    def get(self, ref: Node | int) -> Node:
        if isinstance(ref, Node):
            return ref
        return self.nodes[ref]

    def child(self, parent: Node | int, id: str, kind: NodeKind) -> Optional[Node]:
        p = self.get(parent)
        for idx in p.children:
            c = self.nodes[idx]
            if c.id == id and c.kind == kind:
                return c
        return None

    def children(self, parent: Node | int, kind: NodeKind | None = None) -> list[Node]:
        p = self.get(parent)
        out = [self.nodes[i] for i in p.children]
        if kind is not None:
            out = [c for c in out if c.kind == kind]
        return out

    def of_kind(self, kind: NodeKind) -> list[Node]:
        return [self.nodes[i] for i in self._by_kind.get(kind, [])]

    def walk(self, start: Node | int | None = None) -> Iterator[Node]:
        """Depth-first, pre-order, children in creation order."""
        first = self.root if start is None else self.get(start)
        if first.detached:
            return
        stack = [first.index]
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def detach(self, ref: Node | int) -> None:
        """Remove a subtree from traversal and from the kind index."""
        node = self.get(ref)
        if node.parent is None:
            raise ValueError("cannot detach the root node")
        if node.detached:
            return
        parent = self.nodes[node.parent]
        parent.children.remove(node.index)

        for n in list(self.walk(node)):
            n.detached = True
            self._by_kind[n.kind].remove(n.index)

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_kind.values())
