"""
Dataflow between documents.

Two concerns live here:

- DataflowPropagator delivers change notifications. When the content behind
  a producer changes, every document expecting that content is handed its own
  current value and the new upstream value, exactly once per change. A newly
  established expectation gets the same delivery immediately, so a consumer
  picks up an upstream value that existed before it was connected.

- compute_groups derives connectivity groups for presentation. It is a pure
  function of the documents and is recomputed on every render pass.
"""
import hashlib
import logging
from typing import Callable, Dict, List, Optional, Sequence, Set

from livecanvas.content import ContentStore
from livecanvas.documents import Document, DocumentStore

logger = logging.getLogger(__name__)

Deliver = Callable[[Document, object, object], None]


class DataflowPropagator:
    """Routes content changes to the documents consuming them.

    Args:
        contents: Content store to watch.
        documents: Document store holding the expectations.
        deliver: Called as ``deliver(document, own_value, upstream_value)``;
            the caller forwards it to the document's live widget instance.
    """

    def __init__(self, contents: ContentStore, documents: DocumentStore, deliver: Deliver):
        self.contents = contents
        self.documents = documents
        self.deliver = deliver
        self._propagating: Set[str] = set()

        contents.add_change_callback(self._on_content_changed)
        documents.add_expected_callback(self._on_expected_established)

    def close(self) -> None:
        """Stop watching the stores."""
        self.contents.remove_change_callback(self._on_content_changed)
        self.documents.remove_expected_callback(self._on_expected_established)

    def _on_content_changed(self, content_id: str, old: object, new: object) -> None:
        self.notify(content_id, new)

    def _on_expected_established(self, doc: Document, content_id: str) -> None:
        if doc.content_id == content_id:
            return
        self._deliver_one(doc, self.contents.value_of(content_id))

    def notify(self, content_id: str, new_value: object) -> int:
        """Deliver new_value to every consumer of content_id.

        Deliveries that change further contents cascade synchronously. A
        content that is already propagating is not re-entered, which stops
        cyclic connections from recursing forever.

        Returns:
            Number of documents notified.
        """
        if content_id in self._propagating:
            logger.warning(f"Cycle detected while propagating content {content_id}, stopping")
            return 0

        consumers = self.documents.consumers_of(content_id)
        if not consumers:
            return 0

        logger.debug(f"Propagating content {content_id} to {len(consumers)} consumer(s)")
        self._propagating.add(content_id)
        try:
            for doc in consumers:
                self._deliver_one(doc, new_value)
        finally:
            self._propagating.discard(content_id)
        return len(consumers)

    def _deliver_one(self, doc: Document, upstream_value: object) -> None:
        if doc.id not in self.documents:
            return
        own_value = self.contents.value_of(doc.content_id)
        try:
            self.deliver(doc, own_value, upstream_value)
        except Exception as e:
            logger.warning(f"Delivery to document {doc.id} failed: {e}")


class _UnionFind:
    """Disjoint sets over hashable keys with path halving."""

    def __init__(self):
        self._parent: Dict[str, str] = {}

    def find(self, key: str) -> str:
        self._parent.setdefault(key, key)
        while self._parent[key] != key:
            self._parent[key] = self._parent[self._parent[key]]
            key = self._parent[key]
        return key

    def union(self, a: str, b: str) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            self._parent[root_b] = root_a


def compute_groups(documents: Sequence[Document]) -> List[List[Document]]:
    """Partition documents into connectivity groups.

    Documents are linked when their contents are joined by an
    ``expected_content_id`` -> ``content_id`` pairing, transitively. Clones
    share a content and therefore a group.

    Returns:
        Groups in order of first appearance, members in input order.
    """
    sets = _UnionFind()
    for doc in documents:
        sets.find(doc.content_id)
        if doc.expected_content_id:
            sets.union(doc.content_id, doc.expected_content_id)

    groups: Dict[str, List[Document]] = {}
    for doc in documents:
        groups.setdefault(sets.find(doc.content_id), []).append(doc)
    return list(groups.values())


def group_index(documents: Sequence[Document]) -> Dict[str, int]:
    """Map each document id to the index of its group in compute_groups."""
    return {
        doc.id: index
        for index, group in enumerate(compute_groups(documents))
        for doc in group
    }


def group_color(group: Sequence[Document], palette: Sequence[str]) -> Optional[str]:
    """Highlight color for a group.

    Derived from the smallest member id so that adding or removing unrelated
    documents never recolors the group.
    """
    if not group or not palette:
        return None
    anchor = min(doc.id for doc in group)
    digest = hashlib.md5(anchor.encode("utf-8")).digest()
    return palette[int.from_bytes(digest[:4], "big") % len(palette)]
