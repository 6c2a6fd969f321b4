# src/defpatch/query/evaluator.py
import logging
from typing import Dict, Iterator, List, Optional, Tuple

from defpatch.core.managers.config_manager import config_manager
from defpatch.dom.core import Node
from defpatch.dom.models import Document
from .model import (
    AttributeTarget,
    Axis,
    NodeTarget,
    PathExpression,
    Selector,
    Step,
    Target,
    TextTarget,
)

logger = logging.getLogger(__name__)

NodePair = Tuple[Node, Node]  # (parent, node)


class PathEvaluator:
    """
    Resolves PathExpressions against the current state of a Document.

    Every call walks the live tree; nothing is cached between calls, so each
    operation sees the mutations of the operations applied before it.
    """

    def __init__(
            self,
            document: Document,
            name_attribute: Optional[str] = None,
            parent_attribute: Optional[str] = None,
    ):
        self.document = document
        self.name_attribute = name_attribute or config_manager.get_nested(
            "inheritance.name_attribute", "Name"
        )
        self.parent_attribute = parent_attribute or config_manager.get_nested(
            "inheritance.parent_attribute", "ParentName"
        )

    def evaluate(self, expr: PathExpression, include_inheritors: bool = False) -> List[Target]:
        """
        Resolves an expression to its ordered targets.

        Args:
            expr: The parsed path.
            include_inheritors: When True, every matched template node (one
                carrying the name marker) is followed by all nodes that would
                inherit from it. Only valid for node selectors.

        Returns:
            List[Target]: Targets in order of discovery; empty when nothing matched.
        """
        pairs = self._match_steps(expr.steps)

        if expr.selector == Selector.TEXT:
            return [TextTarget(node) for _, node in pairs]
        if expr.selector == Selector.ATTRIBUTE:
            return [AttributeTarget(node, expr.attribute) for _, node in pairs if expr.attribute in node.attrs]

        if include_inheritors:
            pairs = self._with_inheritors(pairs)

        logger.debug("Path '%s' matched %d node(s)", expr, len(pairs))
        return [NodeTarget(parent, node) for parent, node in pairs]

    def exists(self, expr: PathExpression) -> bool:
        """Existence test used by conditional operations; never mutates."""
        return bool(self.evaluate(expr))

    def inheritors_of(self, template_name: str, transitive: bool = True) -> List[Node]:
        """
        Returns all nodes that would inherit from the template named `template_name`.

        This scans for the inheritance marker only; inheritance itself is not
        expanded. With `transitive`, inheritors of inheritors are included.
        """
        return [node for _, node in self._inheritor_pairs([template_name], transitive)]

    # --- Internals ---

    def _match_steps(self, steps: Tuple[Step, ...]) -> List[NodePair]:
        contexts: List[NodePair] = [(self.document.node, self.document.node)]
        for step in steps:
            matched: List[NodePair] = []
            seen = set()
            for _, context in contexts:
                if step.axis == Axis.CHILD:
                    candidates = ((context, child) for child in context.children)
                else:
                    candidates = self._descendant_pairs(context)
                for parent, node in candidates:
                    if id(node) not in seen and step.matches(node):
                        seen.add(id(node))
                        matched.append((parent, node))
            contexts = matched
            if not contexts:
                break
        return contexts

    @staticmethod
    def _descendant_pairs(context: Node) -> Iterator[NodePair]:
        for child in context.children:
            yield context, child
            yield from PathEvaluator._descendant_pairs(child)

    def _with_inheritors(self, pairs: List[NodePair]) -> List[NodePair]:
        result: List[NodePair] = []
        seen = set()
        for parent, node in pairs:
            if id(node) not in seen:
                seen.add(id(node))
                result.append((parent, node))
            template_name = node.attrs.get(self.name_attribute)
            if template_name is None:
                continue
            for pair in self._inheritor_pairs([template_name], transitive=True):
                if id(pair[1]) not in seen:
                    seen.add(id(pair[1]))
                    result.append(pair)
        return result

    def _inheritor_pairs(self, names: List[str], transitive: bool) -> List[NodePair]:
        by_parent: Dict[str, List[NodePair]] = {}
        order: Dict[int, int] = {}
        for index, (parent, node) in enumerate(self._descendant_pairs(self.document.node)):
            order[id(node)] = index
            reference = node.attrs.get(self.parent_attribute)
            if reference is not None:
                by_parent.setdefault(reference, []).append((parent, node))

        found: List[NodePair] = []
        seen = set()
        queue = list(names)
        visited_names = set()
        while queue:
            name = queue.pop(0)
            if name in visited_names:
                continue
            visited_names.add(name)
            for parent, node in by_parent.get(name, []):
                if id(node) in seen:
                    continue
                seen.add(id(node))
                found.append((parent, node))
                child_name = node.attrs.get(self.name_attribute)
                if transitive and child_name is not None:
                    queue.append(child_name)

        found.sort(key=lambda pair: order[id(pair[1])])
        return found
