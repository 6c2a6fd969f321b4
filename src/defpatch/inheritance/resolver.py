# src/defpatch/inheritance/resolver.py
import logging
from typing import Dict, List, Optional, Set

from defpatch.core.errors import InheritanceError
from defpatch.core.managers.config_manager import config_manager
from defpatch.dom.core import Node
from defpatch.dom.models import Document

logger = logging.getLogger(__name__)


class InheritanceResolver:
    """
    Expands template inheritance on a fully patched document.

    A template is a node carrying the name marker (Name="BaseGun"); a node
    carrying the parent marker (ParentName="BaseGun") inherits from it.
    Resolution works on a copy, the input document is never modified.
    """

    def __init__(
            self,
            name_attribute: Optional[str] = None,
            parent_attribute: Optional[str] = None,
            abstract_attribute: Optional[str] = None,
            inherit_attribute: Optional[str] = None,
            keep_abstract: bool = False,
    ):
        self.name_attribute = name_attribute or config_manager.get_nested("inheritance.name_attribute", "Name")
        self.parent_attribute = parent_attribute or config_manager.get_nested(
            "inheritance.parent_attribute", "ParentName"
        )
        self.abstract_attribute = abstract_attribute or config_manager.get_nested(
            "inheritance.abstract_attribute", "Abstract"
        )
        self.inherit_attribute = inherit_attribute or config_manager.get_nested(
            "inheritance.inherit_attribute", "Inherit"
        )
        self.keep_abstract = keep_abstract

        self._list_tags: tuple = ()
        self._templates: Dict[str, Node] = {}
        self._resolved: Dict[int, Node] = {}
        self._in_progress: Set[int] = set()

    def resolve(self, document: Document) -> Document:
        """
        Returns a new Document with every inheritor merged with its template chain.

        Resolution is bottom-up: a node's children are resolved before the node
        itself, and a template is fully resolved before anything inherits from
        it, so inheritors nested inside other inheritors or templates are merged too.

        Raises:
            InheritanceError: On cyclic inheritance, including a template that
                contains an inheritor of itself.
        """
        result = document.clone()
        self._list_tags = result.list_tags
        self._templates = self._index_templates(result)
        self._resolved = {}
        self._in_progress = set()

        inheritors = sum(1 for node in result.iter_nodes() if self.parent_attribute in node.attrs)
        result.node = self._resolve_node(result.node)

        if not self.keep_abstract:
            removed = self._drop_abstract(result.node)
            logger.debug("Removed %d abstract template(s)", removed)

        logger.info("Resolved inheritance for %d node(s) in '%s'", inheritors, result.source)
        return result

    # --- Resolution ---

    def _index_templates(self, document: Document) -> Dict[str, Node]:
        templates: Dict[str, Node] = {}
        for node in document.iter_nodes():
            name = node.attrs.get(self.name_attribute)
            if name is None:
                continue
            if name in templates:
                logger.warning("Duplicate template name '%s'; keeping the first definition", name)
                continue
            templates[name] = node
        return templates

    def _resolve_node(self, node: Node) -> Node:
        """Returns `node` with its whole subtree resolved; untouched subtrees are returned as is."""
        key = id(node)
        if key in self._resolved:
            return self._resolved[key]

        parent_name = node.attrs.get(self.parent_attribute)
        label = node.attrs.get(self.name_attribute) or f"<{node.tag}>"
        if key in self._in_progress:
            raise InheritanceError(label, f"cyclic inheritance through '{parent_name or label}'")

        self._in_progress.add(key)
        try:
            children = [self._resolve_node(c) for c in node.children]
            if any(r is not c for r, c in zip(children, node.children)):
                node = Node(tag=node.tag, attrs=node.attrs, text=node.text, children=children, line=node.line)

            if parent_name is None:
                resolved = node
            elif parent_name not in self._templates:
                logger.error("%s inherits from unknown template '%s'; left unresolved", label, parent_name)
                resolved = node
            else:
                resolved = self._merge(self._resolve_node(self._templates[parent_name]), node, top_level=True)
        finally:
            self._in_progress.discard(key)

        self._resolved[key] = resolved
        return resolved

    def _merge(self, parent: Node, child: Node, top_level: bool = False) -> Node:
        """
        Merges `child` over `parent` into a new node.

        Child attributes and text win. The name and abstract markers of the
        parent are never inherited.
        """
        attrs = dict(child.attrs)
        skipped = {self.name_attribute, self.abstract_attribute} if top_level else set()
        for key, value in parent.attrs.items():
            if key not in skipped and key not in attrs:
                attrs[key] = value

        inherit = attrs.pop(self.inherit_attribute, "True").strip().lower() != "false"
        return Node(
            tag=child.tag,
            attrs=attrs,
            text=child.text if child.text is not None else parent.text,
            children=self._merge_children(parent, child, inherit),
            line=child.line,
        )

    def _merge_children(self, parent: Node, child: Node, inherit: bool) -> List[Node]:
        if not inherit:
            return [c.clone() for c in child.children]

        overrides: Dict[str, Node] = {}
        for c in child.children:
            if c.tag not in self._list_tags:
                overrides.setdefault(c.tag, c)

        children: List[Node] = []
        used: Set[int] = set()
        for pc in parent.children:
            override = overrides.get(pc.tag) if pc.tag not in self._list_tags else None
            if override is not None and id(override) not in used:
                used.add(id(override))
                children.append(self._merge(pc, override))
            else:
                children.append(pc.clone())

        for c in child.children:
            if id(c) not in used:
                children.append(c.clone())
        return children

    def _drop_abstract(self, node: Node) -> int:
        removed = 0
        kept = []
        for child in node.children:
            if child.attrs.get(self.abstract_attribute, "").strip().lower() == "true":
                removed += 1
                continue
            removed += self._drop_abstract(child)
            kept.append(child)
        node.children = kept
        return removed
