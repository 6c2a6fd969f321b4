# src/defpatch/dom/models.py
from typing import Iterator, Optional, Tuple

from pydantic import BaseModel, Field

from .core import LIST_ITEM_TAG, Node

DOCUMENT_TAG = "#document"


class Document(BaseModel):
    """
    Represents a parsed structural document.

    The tree hangs below a synthetic '#document' node whose only child is the
    root element, so an absolute path's first step names the root element.
    The model also carries the sibling-uniqueness policy used by the builder
    and by the mutation operations.
    """
    source: str = "<memory>"
    node: Node = Field(default_factory=lambda: Node(tag=DOCUMENT_TAG))

    # --- Sibling policy ---
    list_tags: Tuple[str, ...] = (LIST_ITEM_TAG,)
    root_children_are_list_items: bool = False

    @classmethod
    def from_root(cls, root: Node, source: str = "<memory>", **policy) -> 'Document':
        """Wraps a root element into a new document."""
        return cls(source=source, node=Node(tag=DOCUMENT_TAG, children=[root]), **policy)

    @property
    def root(self) -> Optional[Node]:
        """The root element, or None when it has been removed."""
        return self.node.children[0] if self.node.children else None

    def allows_repeat(self, parent: Node, tag: str) -> bool:
        """Whether several children of `parent` may share `tag`."""
        if tag in self.list_tags:
            return True
        if parent is self.node:
            return False
        return self.root_children_are_list_items and parent is self.root

    def collides(self, parent: Node, tag: str, exclude: Optional[Node] = None) -> bool:
        """
        Returns True if adding a `tag` child to `parent` would duplicate a
        non-list sibling. `exclude` is ignored during the check (used by renames).
        """
        if self.allows_repeat(parent, tag):
            return False
        return any(child.tag == tag and child is not exclude for child in parent.children)

    def find_duplicate(self, parent: Optional[Node] = None) -> Optional[Tuple[Node, str]]:
        """
        Searches the subtree for a parent holding repeated non-list tags.

        Returns:
            (parent, tag) for the first violation in document order, or None.
        """
        parent = parent if parent is not None else self.node
        seen = set()
        for child in parent.children:
            if child.tag in seen and not self.allows_repeat(parent, child.tag):
                return parent, child.tag
            seen.add(child.tag)
        for child in parent.children:
            found = self.find_duplicate(child)
            if found:
                return found
        return None

    def iter_nodes(self) -> Iterator[Node]:
        """Yields all element nodes in document order, root included."""
        yield from self.node.iter_descendants()

    def clone(self) -> 'Document':
        return Document(
            source=self.source,
            node=self.node.clone(),
            list_tags=self.list_tags,
            root_children_are_list_items=self.root_children_are_list_items,
        )

    def to_xml(self, indent: Optional[str] = "  ", declaration: bool = True) -> str:
        """Serializes the document; an empty document yields only the declaration."""
        parts = []
        if declaration:
            parts.append('<?xml version="1.0" encoding="utf-8"?>')
        if self.root is not None:
            parts.append(self.root.to_xml(indent))
        return ("\n" if indent is not None else "").join(parts)
