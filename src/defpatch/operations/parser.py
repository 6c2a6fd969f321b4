# src/defpatch/operations/parser.py
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from defpatch.core.errors import PayloadError
from defpatch.dom.builder import DocumentBuilder
from defpatch.dom.core import LIST_ITEM_TAG, Node
from defpatch.dom.models import Document
from defpatch.model import PatchUnit
from defpatch.query.parser import parse_path
from .core import Operation, OperationDefinition, Order, SuccessMode
from .registry import OperationRegistry

logger = logging.getLogger(__name__)

OPERATION_TAG = "Operation"
CLASS_ATTRIBUTE = "Class"
REQUIRE_ATTRIBUTE = "MayRequire"

# Fields every kind accepts besides its own
COMMON_FIELDS = ("path", "inheritors", "success", "order")
FIELD_ALIASES = {"xpath": "path"}
_BOOL_WORDS = {"true": True, "false": False}


class PatchUnitParser:
    """
    Turns patch documents into PatchUnits.

    A patch document has a root element whose children are
    <Operation Class="Kind"> elements. Markup that is not well-formed raises
    MalformedDocumentError; a single malformed operation element only marks
    that operation with a parse error so it is reported as Failed at run time.
    """

    def __init__(self, builder: Optional[DocumentBuilder] = None):
        self.builder = builder or DocumentBuilder(enforce_unique_siblings=False)

    def parse(self, markup: Union[str, bytes], name: str = "<memory>") -> PatchUnit:
        """Parses patch markup; `name` labels the unit in reports."""
        return self.from_document(self.builder.parse(markup, source=name), name=name)

    def parse_file(self, path: Union[str, Path]) -> PatchUnit:
        path = Path(path)
        document = self.builder.parse_file(path)
        return self.from_document(document, name=path.stem)

    def from_document(self, document: Document, name: Optional[str] = None) -> PatchUnit:
        operations = [self._parse_top_level(node) for node in document.root.children]
        broken = sum(1 for op in operations if op.parse_error)
        logger.debug(
            "Parsed patch unit '%s': %d operation(s), %d malformed",
            name or document.source, len(operations), broken,
        )
        return PatchUnit(name=name or document.source, source=document.source, operations=operations)

    # --- Operation elements ---

    def _parse_top_level(self, node: Node) -> Operation:
        kind = node.attrs.get(CLASS_ATTRIBUTE) or node.tag
        try:
            if node.tag != OPERATION_TAG:
                raise PayloadError(f"expected <{OPERATION_TAG}> but found <{node.tag}>")
            return self.parse_operation(node)
        except PayloadError as e:
            logger.warning("Malformed operation <%s Class=%r> at line %s: %s", node.tag, kind, node.line, e)
            return Operation(kind=kind, parse_error=str(e), line=node.line)

    def parse_operation(self, node: Node) -> Operation:
        """
        Builds one Operation (recursively) from its element.

        Raises:
            PayloadError: For unknown kinds, unknown or duplicate fields,
                missing required fields or invalid field values.
        """
        class_name = node.attrs.get(CLASS_ATTRIBUTE)
        if not class_name:
            raise PayloadError(f"<{node.tag}> has no '{CLASS_ATTRIBUTE}' attribute")
        definition = OperationRegistry.get(class_name)
        if definition is None:
            raise PayloadError(f"unknown operation kind '{class_name}'")

        fields = self._collect_fields(node, definition)
        values: Dict[str, Any] = {"kind": definition.kind, "line": node.line}

        for field, element in fields.items():
            values.update(self._parse_field(field, element))

        if REQUIRE_ATTRIBUTE in node.attrs:
            values["may_require"] = tuple(
                part.strip() for part in node.attrs[REQUIRE_ATTRIBUTE].split(",") if part.strip()
            )

        missing = [f for f in definition.required if f not in fields]
        if definition.requires_path and "path" not in fields:
            missing.insert(0, "path")
        if missing:
            raise PayloadError(f"{definition.kind} is missing required field(s): {', '.join(missing)}")

        op = Operation(**values)
        if definition.validator is not None:
            definition.validator(op)

        if op.success != SuccessMode.NORMAL:
            logger.debug(
                "%s at line %s uses deprecated success mode '%s'; prefer a Conditional",
                op.kind, op.line, op.success.value,
            )
        return op

    @staticmethod
    def _collect_fields(node: Node, definition: OperationDefinition) -> Dict[str, Node]:
        accepted = set(COMMON_FIELDS) | set(definition.accepted)
        fields: Dict[str, Node] = {}
        for child in node.children:
            field = FIELD_ALIASES.get(child.tag, child.tag)
            if field not in accepted:
                raise PayloadError(f"{definition.kind} does not accept a <{child.tag}> field")
            if field in fields:
                raise PayloadError(f"field <{child.tag}> given more than once")
            fields[field] = child
        return fields

    def _parse_field(self, field: str, element: Node) -> Dict[str, Any]:
        text = element.text

        if field == "path":
            return {"path": parse_path(text or "")}
        if field == "inheritors":
            flag = _BOOL_WORDS.get((text or "").strip().lower())
            if flag is None:
                raise PayloadError(f"<{element.tag}> must be True or False, got '{text}'")
            return {"inheritors": flag}
        if field == "value":
            return {"value": tuple(child.clone() for child in element.children), "value_text": text}
        if field in ("name", "attribute"):
            if not text:
                raise PayloadError(f"<{element.tag}> must not be empty")
            return {field: text}
        if field == "order":
            return {"order": self._enum(Order, text, element.tag)}
        if field == "success":
            return {"success": self._enum(SuccessMode, text, element.tag)}
        if field == "mods":
            return {"mods": tuple(li.text for li in element.find_children(LIST_ITEM_TAG) if li.text)}
        if field == "operations":
            return {"operations": tuple(self._parse_list(element))}
        if field in ("match", "nomatch"):
            return {field: self.parse_operation(element)}

        raise PayloadError(f"unsupported field <{element.tag}>")

    def _parse_list(self, element: Node) -> List[Operation]:
        operations = []
        for child in element.children:
            if child.tag != LIST_ITEM_TAG:
                raise PayloadError(f"<{element.tag}> may only contain <{LIST_ITEM_TAG}> entries, found <{child.tag}>")
            operations.append(self.parse_operation(child))
        return operations

    @staticmethod
    def _enum(enum_cls, text: Optional[str], tag: str):
        try:
            return enum_cls(text)
        except ValueError:
            allowed = ", ".join(member.value for member in enum_cls)
            raise PayloadError(f"<{tag}> must be one of {allowed}, got '{text}'") from None
