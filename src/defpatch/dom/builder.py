# src/defpatch/dom/builder.py
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from bs4 import BeautifulSoup, CData, NavigableString, Tag
from lxml import etree

from defpatch.core.errors import MalformedDocumentError
from defpatch.core.managers.config_manager import config_manager
from .core import Node
from .models import Document

logger = logging.getLogger(__name__)

_TEXT_TYPES = (NavigableString, CData)


class DocumentBuilder:
    """
    Builder responsible for parsing raw markup into a Document model.

    Well-formedness is checked strictly with lxml first; the tree itself is
    then built from the BeautifulSoup tag tree. Sibling uniqueness is
    validated against the document's list policy.
    """

    def __init__(
            self,
            list_tags: Optional[Iterable[str]] = None,
            root_children_are_list_items: Optional[bool] = None,
            enforce_unique_siblings: bool = True,
    ):
        """
        Args:
            list_tags: Tags allowed to repeat under one parent
                       (defaults to 'document.list_tags').
            root_children_are_list_items: Whether the root element's children
                       may repeat (defaults to 'document.root_children_are_list_items').
            enforce_unique_siblings: Reject repeated non-list siblings. Patch
                       documents turn this off, their payloads may legitimately
                       hold several entries of one kind.
        """
        if list_tags is None:
            list_tags = config_manager.get_nested("document.list_tags", ["li"])
        if root_children_are_list_items is None:
            root_children_are_list_items = config_manager.get_nested(
                "document.root_children_are_list_items", False
            )
        self.list_tags = tuple(list_tags)
        self.root_children_are_list_items = bool(root_children_are_list_items)
        self.enforce_unique_siblings = enforce_unique_siblings

    def parse(self, markup: Union[str, bytes], source: str = "<memory>") -> Document:
        """
        Parses markup into a Document.

        Args:
            markup: The raw XML text.
            source: A label used in error messages and reports.

        Returns:
            Document: The parsed document.

        Raises:
            MalformedDocumentError: On broken markup or duplicate non-list siblings.
        """
        data = markup.encode("utf-8") if isinstance(markup, str) else markup
        data = data.lstrip(b"\xef\xbb\xbf").strip()
        checked = self._check_well_formed(data, source)

        soup = BeautifulSoup(data, "xml")
        root_tag = next((c for c in soup.contents if isinstance(c, Tag)), None)
        if root_tag is None:
            raise MalformedDocumentError(source, "document has no root element")

        document = Document.from_root(
            self._build_tree(root_tag, checked),
            source=source,
            list_tags=self.list_tags,
            root_children_are_list_items=self.root_children_are_list_items,
        )

        duplicate = document.find_duplicate() if self.enforce_unique_siblings else None
        if duplicate:
            parent, tag = duplicate
            where = f" (line {parent.line})" if parent.line else ""
            raise MalformedDocumentError(
                source, f"duplicate non-list child <{tag}> under <{parent.tag}>{where}"
            )

        logger.debug("Parsed document '%s' with root <%s>", source, document.root.tag)
        return document

    def parse_file(self, path: Union[str, Path]) -> Document:
        """Reads and parses a document from disk."""
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise MalformedDocumentError(str(path), f"cannot read file: {e}") from e
        return self.parse(data, source=str(path))

    def parse_node(self, markup: Union[str, bytes]) -> Node:
        """Parses a standalone fragment with a single root and returns that root node."""
        return self.parse(markup, source="<fragment>").root

    @staticmethod
    def _check_well_formed(data: bytes, source: str) -> "etree._Element":
        parser = etree.XMLParser(recover=False, resolve_entities=False, no_network=True)
        try:
            return etree.fromstring(data, parser=parser)
        except etree.XMLSyntaxError as e:
            raise MalformedDocumentError(source, str(e)) from e

    def _build_tree(self, tag: Tag, element: Optional["etree._Element"] = None) -> Node:
        """
        Recursively builds a simplified node tree from a BeautifulSoup Tag.

        `element` is the matching lxml element of the strict check; it only
        supplies source line numbers.
        """
        elements = iter(e for e in element if isinstance(e.tag, str)) if element is not None else iter(())
        children: List[Node] = []
        texts: List[str] = []
        for child in tag.children:
            if isinstance(child, Tag):
                children.append(self._build_tree(child, next(elements, None)))
            elif type(child) in _TEXT_TYPES:
                # Comments, processing instructions and doctypes are dropped
                texts.append(str(child))

        text = "".join(texts).strip() or None
        name = f"{tag.prefix}:{tag.name}" if tag.prefix else tag.name
        attrs = {
            key: " ".join(value) if isinstance(value, list) else str(value)
            for key, value in tag.attrs.items()
        }
        return Node(
            tag=name,
            attrs=attrs,
            text=text,
            children=children,
            line=element.sourceline if element is not None else None,
        )
