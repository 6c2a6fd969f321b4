# src/defpatch/dom/core.py
from typing import Dict, List, Optional
from xml.sax.saxutils import escape, quoteattr

from pydantic import BaseModel, Field

LIST_ITEM_TAG = "li"


class Node(BaseModel):
    """
    Data model representing one element of the document tree.

    A node has a tag, ordered attributes, ordered children and optional text.
    Mixed content (text and children on the same node) is tolerated.
    """
    tag: str
    attrs: Dict[str, str] = Field(default_factory=dict)
    text: Optional[str] = None
    children: List['Node'] = Field(default_factory=list)
    line: Optional[int] = Field(default=None, exclude=True, repr=False)

    @property
    def is_empty(self) -> bool:
        """Returns True if the node contains no text and no children."""
        return not self.text and not self.children

    @property
    def is_list_item(self) -> bool:
        return self.tag == LIST_ITEM_TAG

    def __eq__(self, other: object) -> bool:
        # Structural equality; 'line' is a parse annotation and does not count.
        if not isinstance(other, Node):
            return NotImplemented
        return (
            self.tag == other.tag
            and self.attrs == other.attrs
            and (self.text or None) == (other.text or None)
            and self.children == other.children
        )

    def clone(self) -> 'Node':
        """Returns a deep structural copy that shares nothing with this node."""
        return Node(
            tag=self.tag,
            attrs=dict(self.attrs),
            text=self.text,
            children=[child.clone() for child in self.children],
            line=self.line,
        )

    # --- Child lookup ---

    def index_of(self, child: 'Node') -> int:
        """
        Returns the position of `child` among this node's children, by identity.

        Raises:
            ValueError: If `child` is not a direct child of this node.
        """
        for i, candidate in enumerate(self.children):
            if candidate is child:
                return i
        raise ValueError(f"<{child.tag}> is not a child of <{self.tag}>")

    def find_child(self, tag: str) -> Optional['Node']:
        """Returns the first direct child with the given tag, or None."""
        for child in self.children:
            if child.tag == tag:
                return child
        return None

    def find_children(self, tag: str) -> List['Node']:
        return [child for child in self.children if child.tag == tag]

    def child_text(self, tag: str) -> Optional[str]:
        child = self.find_child(tag)
        return child.text if child is not None else None

    def iter_descendants(self):
        """Yields every descendant in document (pre-)order, excluding self."""
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    # --- Serialization ---

    def to_xml(self, indent: Optional[str] = None, _level: int = 0) -> str:
        """
        Serializes the subtree to markup.

        Args:
            indent: Indentation unit for pretty output; None gives compact markup.
        """
        attrs = "".join(f" {name}={quoteattr(value)}" for name, value in self.attrs.items())
        text = escape(self.text) if self.text else ""

        if not self.children:
            if not text:
                return f"<{self.tag}{attrs} />"
            return f"<{self.tag}{attrs}>{text}</{self.tag}>"

        if indent is None:
            inner = "".join(child.to_xml() for child in self.children)
            return f"<{self.tag}{attrs}>{text}{inner}</{self.tag}>"

        pad = indent * (_level + 1)
        lines = [f"<{self.tag}{attrs}>{text}"]
        for child in self.children:
            lines.append(pad + child.to_xml(indent, _level + 1))
        lines.append(indent * _level + f"</{self.tag}>")
        return "\n".join(lines)


Node.model_rebuild()
