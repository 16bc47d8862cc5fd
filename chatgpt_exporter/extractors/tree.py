"""
Message tree traversal and reconstruction.

traverse_mapping() walks the raw node mapping once (explicit stack, visited
set) and returns the visit order. MessageTreeBuilder groups the resulting
processed messages by parent for depth-first rendering.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from chatgpt_exporter.core.models import ProcessedMessage
from chatgpt_exporter.core.source_schemas import NULL_PARENT_ID, ChatGPTNode

logger = logging.getLogger(__name__)


def _is_root(node: ChatGPTNode, mapping: Mapping[str, ChatGPTNode]) -> bool:
    parent = node.parent
    return parent is None or parent == NULL_PARENT_ID or parent not in mapping


def find_roots(
    mapping: Mapping[str, ChatGPTNode], current_node: Optional[str] = None
) -> List[str]:
    """
    Return the root node ids of a mapping, in mapping order.

    The root on current_node's path to root is moved to the front. If the
    mapping has no root at all (every node has a parent, i.e. a cycle), the
    topmost ancestor reachable from current_node is used instead.
    """
    roots = [node_id for node_id, node in mapping.items() if _is_root(node, mapping)]

    if current_node not in mapping:
        return roots

    seen = set()
    top = current_node
    while top not in seen:
        seen.add(top)
        node = mapping[top]
        if _is_root(node, mapping):
            break
        top = node.parent

    if top in roots:
        roots.remove(top)
    roots.insert(0, top)
    return roots


@dataclass(frozen=True)
class Traversal:
    """Visit order of one mapping traversal."""

    order: Tuple[str, ...]
    total: int

    @property
    def visited(self) -> int:
        return len(self.order)


def traverse_mapping(
    mapping: Mapping[str, ChatGPTNode], current_node: Optional[str] = None
) -> Traversal:
    """
    Depth-first pre-order traversal from every root.

    Each node is visited at most once, so cycles terminate. Children are
    visited in their declared array order. Child ids missing from the mapping
    are skipped.

    Parameters
    ----------
    mapping : Mapping[str, ChatGPTNode]
        Node arena keyed by node id
    current_node : str, optional
        Declared current leaf; its root is traversed first

    Returns
    -------
    Traversal
        Node ids in visit order and the mapping size
    """
    visited = set()
    order: List[str] = []

    for root_id in find_roots(mapping, current_node):
        stack = [root_id]
        while stack:
            node_id = stack.pop()
            if node_id in visited:
                continue
            node = mapping.get(node_id)
            if node is None:
                logger.debug("Skipping dangling child reference %s", node_id)
                continue
            visited.add(node_id)
            order.append(node_id)
            for child_id in reversed(node.children):
                if child_id not in visited:
                    stack.append(child_id)

    return Traversal(order=tuple(order), total=len(mapping))


@dataclass(frozen=True)
class TreeEntry:
    """One message yielded by MessageTree.iter_depth_first()."""

    message: ProcessedMessage
    depth: int
    branch_index: int
    branch_count: int

    @property
    def starts_branch(self) -> bool:
        return self.branch_count > 1


@dataclass(frozen=True)
class MessageTree:
    """Immutable forest of processed messages."""

    roots: Tuple[ProcessedMessage, ...]
    children_by_parent: Mapping[str, Tuple[ProcessedMessage, ...]]

    def children(self, message_id: str) -> Tuple[ProcessedMessage, ...]:
        return self.children_by_parent.get(message_id, ())

    def iter_depth_first(self) -> Iterator[TreeEntry]:
        """
        Yield messages depth-first, siblings in traversal order.

        depth grows by one only below a fork (a node with several children,
        or several roots), so a linear conversation stays at depth 0.
        """
        root_depth = 1 if len(self.roots) > 1 else 0
        stack = [
            (message, root_depth, index, len(self.roots))
            for index, message in reversed(list(enumerate(self.roots)))
        ]
        while stack:
            message, depth, index, count = stack.pop()
            yield TreeEntry(message=message, depth=depth, branch_index=index, branch_count=count)

            children = self.children(message.id)
            child_depth = depth + 1 if len(children) > 1 else depth
            for child_index in reversed(range(len(children))):
                stack.append((children[child_index], child_depth, child_index, len(children)))


class MessageTreeBuilder:
    """Group processed messages into a rooted forest."""

    def build(self, messages: Sequence[ProcessedMessage]) -> MessageTree:
        """
        Build the forest for messages given in traversal order.

        A message is a root if it has no parent, or its parent is not among
        messages (e.g. a placeholder node without a message). Children keep
        the order in which they were appended during traversal.
        """
        ids = {message.id for message in messages}
        roots: List[ProcessedMessage] = []
        grouped: Dict[str, List[ProcessedMessage]] = {}

        for message in messages:
            if message.parent_id is None or message.parent_id not in ids:
                roots.append(message)
            else:
                grouped.setdefault(message.parent_id, []).append(message)

        return MessageTree(
            roots=tuple(roots),
            children_by_parent=MappingProxyType(
                {parent: tuple(children) for parent, children in grouped.items()}
            ),
        )
