"""In-memory parent-pointer graph over a user's folders and tracks.

Structure comes only from ``FileSystemNode.parent_id``. Loaded data is never
assumed to be consistent: dangling parents and cycles are tolerated and only
reported by :meth:`FileSystemGraph.validate_hierarchy`.
"""

from collections import defaultdict
from collections.abc import Iterable

from trackfs.schemas.node import FileSystemNode, GraphStats, NodeType, TreeNode, ValidationResult

ROOT_KEY = "root"


class FileSystemGraph:
    def __init__(self, nodes: Iterable[FileSystemNode] = ()) -> None:
        self._nodes: dict[str, FileSystemNode] = {}
        self._children: dict[str, set[str]] = {}
        self._parent: dict[str, str] = {}
        self.load_nodes(nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def get_node(self, node_id: str) -> FileSystemNode | None:
        return self._nodes.get(node_id)

    def get_all_nodes(self) -> list[FileSystemNode]:
        return list(self._nodes.values())

    def load_nodes(self, nodes: Iterable[FileSystemNode]) -> None:
        """Replace all state with ``nodes``; input order does not matter."""
        nodes = list(nodes)
        self._nodes.clear()
        self._children.clear()
        self._parent.clear()

        for node in nodes:
            self._nodes[node.id] = node
            self._children.setdefault(node.id, set())

        for node in nodes:
            if node.parent_id:
                self._children.setdefault(node.parent_id, set()).add(node.id)
                self._parent[node.id] = node.parent_id

    def add_node(self, node: FileSystemNode) -> None:
        old_parent_id = self._parent.pop(node.id, None)
        if old_parent_id and old_parent_id in self._children:
            self._children[old_parent_id].discard(node.id)

        self._nodes[node.id] = node
        self._children.setdefault(node.id, set())
        if node.parent_id:
            self._children.setdefault(node.parent_id, set()).add(node.id)
            self._parent[node.id] = node.parent_id

    def remove_node(self, node_id: str) -> None:
        """Remove a node and its whole subtree. Unknown ids are ignored."""
        node = self._nodes.get(node_id)
        if node is None:
            return

        subtree = self.get_descendant_ids(node_id) | {node_id}
        if node.parent_id and node.parent_id in self._children:
            self._children[node.parent_id].discard(node_id)

        for removed_id in subtree:
            self._nodes.pop(removed_id, None)
            self._children.pop(removed_id, None)
            self._parent.pop(removed_id, None)

    def move_node(self, node_id: str, new_parent_id: str | None) -> bool:
        node = self._nodes.get(node_id)
        if node is None or not self.can_move(node_id, new_parent_id):
            return False

        if node.parent_id and node.parent_id in self._children:
            self._children[node.parent_id].discard(node_id)

        if new_parent_id:
            self._children.setdefault(new_parent_id, set()).add(node_id)
            self._parent[node_id] = new_parent_id
        else:
            self._parent.pop(node_id, None)

        node.parent_id = new_parent_id
        return True

    def can_move(self, node_id: str, target_parent_id: str | None) -> bool:
        if not target_parent_id:
            return True
        if node_id == target_parent_id:
            return False
        return not self.is_descendant(target_parent_id, node_id)

    def is_descendant(self, candidate_id: str, ancestor_id: str) -> bool:
        """True if ``candidate_id`` lies anywhere below ``ancestor_id``."""
        seen: set[str] = set()
        stack = list(self._children.get(ancestor_id, ()))
        while stack:
            child_id = stack.pop()
            if child_id == candidate_id:
                return True
            if child_id in seen:
                continue
            seen.add(child_id)
            stack.extend(self._children.get(child_id, ()))
        return False

    def get_children(self, node_id: str) -> list[FileSystemNode]:
        return [self._nodes[c] for c in self._children.get(node_id, ()) if c in self._nodes]

    def get_parent(self, node_id: str) -> FileSystemNode | None:
        parent_id = self._parent.get(node_id)
        return self._nodes.get(parent_id) if parent_id else None

    def get_root_nodes(self) -> list[FileSystemNode]:
        return [n for n in self._nodes.values() if not n.parent_id]

    def get_descendant_ids(self, node_id: str) -> set[str]:
        result: set[str] = set()
        frontier = [node_id]
        while frontier:
            next_ids = [c for nid in frontier for c in self._children.get(nid, ()) if c not in result]
            result.update(next_ids)
            frontier = next_ids
        result.discard(node_id)
        return result

    def _ancestor_chain(self, node_id: str) -> list[FileSystemNode]:
        # node first, root last; stops at a missing parent or a repeated node
        chain: list[FileSystemNode] = []
        seen: set[str] = set()
        current = self._nodes.get(node_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            chain.append(current)
            current = self._nodes.get(current.parent_id) if current.parent_id else None
        return chain

    def get_path(self, node_id: str) -> str:
        chain = self._ancestor_chain(node_id)
        return "/".join(n.name for n in reversed(chain))

    def get_depth(self, node_id: str) -> int:
        depth = 0
        seen = {node_id}
        current = self._parent.get(node_id)
        while current is not None and current not in seen:
            depth += 1
            seen.add(current)
            current = self._parent.get(current)
        return depth

    def detect_cycles(self) -> bool:
        visited: set[str] = set()
        for start in self._nodes:
            if start in visited:
                continue
            on_stack = {start}
            visited.add(start)
            stack = [(start, iter(self._children.get(start, ())))]
            while stack:
                node_id, children = stack[-1]
                child_id = next(children, None)
                if child_id is None:
                    on_stack.discard(node_id)
                    stack.pop()
                    continue
                if child_id not in self._nodes:
                    continue
                if child_id in on_stack:
                    return True
                if child_id in visited:
                    continue
                visited.add(child_id)
                on_stack.add(child_id)
                stack.append((child_id, iter(self._children.get(child_id, ()))))
        return False

    def validate_hierarchy(self) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        if self.detect_cycles():
            errors.append("Circular reference detected in file system hierarchy")

        for node in self._nodes.values():
            if node.parent_id and node.parent_id not in self._nodes:
                errors.append(
                    f'Node "{node.name}" ({node.id}) references non-existent parent {node.parent_id}'
                )

        names_by_parent: dict[str, list[str]] = defaultdict(list)
        for node in self._nodes.values():
            names_by_parent[node.parent_id or ROOT_KEY].append(node.name)

        for parent_key, names in names_by_parent.items():
            seen: set[str] = set()
            duplicates: list[str] = []
            for name in names:
                if name in seen and name not in duplicates:
                    duplicates.append(name)
                seen.add(name)
            if duplicates:
                if parent_key == ROOT_KEY:
                    parent_name = ROOT_KEY
                else:
                    parent = self._nodes.get(parent_key)
                    parent_name = parent.name if parent else "unknown"
                warnings.append(f'Duplicate names in folder "{parent_name}": {", ".join(duplicates)}')

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    @staticmethod
    def _sort_key(node: FileSystemNode) -> tuple[int, str, str]:
        return (0 if node.type == "folder" else 1, node.name.casefold(), node.name)

    def sorted_children(self, node_id: str) -> list[FileSystemNode]:
        return sorted(self.get_children(node_id), key=self._sort_key)

    def sorted_root_nodes(self) -> list[FileSystemNode]:
        return sorted(self.get_root_nodes(), key=self._sort_key)

    def build_tree(self) -> list[TreeNode]:
        roots = [self._tree_node(n, "", 0) for n in self.sorted_root_nodes()]
        stack = list(roots)
        while stack:
            parent = stack.pop()
            for child in self.sorted_children(parent.id):
                tree_node = self._tree_node(child, parent.full_path, parent.depth + 1)
                parent.children.append(tree_node)
                stack.append(tree_node)
        return roots

    @staticmethod
    def _tree_node(node: FileSystemNode, parent_path: str, depth: int) -> TreeNode:
        return TreeNode(
            id=node.id,
            name=node.name,
            type=node.type,
            data=node,
            full_path=f"{parent_path}/{node.name}" if parent_path else node.name,
            depth=depth,
        )

    def find_by_name(self, name: str, type: NodeType | None = None) -> list[FileSystemNode]:
        needle = name.lower()
        return [
            n for n in self._nodes.values()
            if needle in n.name.lower() and (type is None or n.type == type)
        ]

    def find_duplicate_names(self, parent_id: str | None = None) -> list[FileSystemNode]:
        siblings = self.get_children(parent_id) if parent_id else self.get_root_nodes()
        groups: dict[str, list[FileSystemNode]] = defaultdict(list)
        for node in siblings:
            groups[node.name].append(node)
        return [n for group in groups.values() if len(group) > 1 for n in group]

    def get_stats(self) -> GraphStats:
        nodes = list(self._nodes.values())
        return GraphStats(
            total_nodes=len(nodes),
            folders=sum(1 for n in nodes if n.type == "folder"),
            tracks=sum(1 for n in nodes if n.type == "track"),
            multitracks=sum(1 for n in nodes if n.type == "track" and n.is_multitrack),
            max_depth=max((self.get_depth(n.id) for n in nodes), default=0),
            root_nodes=len(self.get_root_nodes()),
        )
