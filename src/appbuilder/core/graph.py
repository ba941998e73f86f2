"""
Dependency graph.

A single arena of FileInfo nodes indexed by integer id. Two tables point into
it: ``by_output`` (output path -> id), which is also the live graph, and
``require_map`` (request name -> id), the resolution memo. A single output may
be reachable under several request names (relative path, resolved input
path), so the two tables are kept apart.

Nodes are never removed during a session and edges only accumulate.

Ordering policy: ``ordered_dependencies`` is a depth-first walk with a visited
set. Dependencies precede their dependents, the first visit fixes a node's
position, and cycles terminate at the visited guard. Under cycles the order is
whatever the walk discovered first; callers must not assume a topological
order in that case.
"""

from __future__ import annotations

from collections.abc import Iterator

from appbuilder.core.fileinfo import FileInfo


class DependencyGraph:
    """Arena of build nodes with memo and output indexes."""

    def __init__(self) -> None:
        self._nodes: list[FileInfo] = []
        self.by_output: dict[str, int] = {}
        self.require_map: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[FileInfo]:
        return iter(self._nodes)

    def __contains__(self, output_path: object) -> bool:
        return output_path in self.by_output

    # =========================================================================
    # Nodes
    # =========================================================================

    def add(self, info: FileInfo) -> FileInfo:
        """
        Register a node, or return the existing node for its output path.

        Exactly one node exists per output path.
        """
        existing = self.by_output.get(info.output_path)
        if existing is not None:
            return self._nodes[existing]
        info.id = len(self._nodes)
        self._nodes.append(info)
        self.by_output[info.output_path] = info.id
        return info

    def node(self, node_id: int) -> FileInfo:
        return self._nodes[node_id]

    def get(self, output_path: str) -> FileInfo | None:
        node_id = self.by_output.get(output_path)
        return None if node_id is None else self._nodes[node_id]

    def __getitem__(self, output_path: str) -> FileInfo:
        return self._nodes[self.by_output[output_path]]

    # =========================================================================
    # Memo
    # =========================================================================

    def lookup(self, name: str) -> FileInfo | None:
        """Memoized node for a request name."""
        node_id = self.require_map.get(name)
        return None if node_id is None else self._nodes[node_id]

    def remember(self, info: FileInfo, *names: str) -> None:
        """Memoize ``info`` under each given request name."""
        for name in names:
            if name:
                self.require_map[name] = info.id

    # =========================================================================
    # Edges
    # =========================================================================

    def depends(self, dependency: FileInfo | None, dependent: FileInfo | None) -> bool:
        """
        Record that ``dependent``'s output depends on ``dependency``'s output.

        Returns:
            True if a new edge was added
        """
        if dependency is None or dependent is None or dependency.id == dependent.id:
            return False
        if dependency.id in dependent.deps:
            return False
        dependent.deps.add(dependency.id)
        return True

    @property
    def edge_count(self) -> int:
        return sum(len(node.deps) for node in self._nodes)

    def ordered_dependencies(self, output_path: str) -> list[FileInfo]:
        """
        Linear order of every transitive dependency of a node, then the node.

        Each output appears once. Dependencies are visited in insertion order
        of their ids.
        """
        root = self.by_output.get(output_path)
        if root is None:
            return []

        visited: set[int] = set()
        ordered: list[FileInfo] = []

        def walk(node_id: int) -> None:
            if node_id in visited:
                return
            visited.add(node_id)
            node = self._nodes[node_id]
            for dep_id in sorted(node.deps):
                walk(dep_id)
            ordered.append(node)

        walk(root)
        return ordered

    def dependents(self, info: FileInfo) -> list[FileInfo]:
        """
        Every node that transitively depends on ``info``.

        Returned dependency-first: a node appears before anything that
        depends on it (cycles excepted).
        """
        reverse: dict[int, list[int]] = {}
        for node in self._nodes:
            for dep_id in node.deps:
                reverse.setdefault(dep_id, []).append(node.id)

        visited: set[int] = {info.id}
        postorder: list[int] = []

        def walk(node_id: int) -> None:
            for parent_id in reverse.get(node_id, []):
                if parent_id in visited:
                    continue
                visited.add(parent_id)
                walk(parent_id)
                postorder.append(parent_id)

        walk(info.id)
        return [self._nodes[node_id] for node_id in reversed(postorder)]
