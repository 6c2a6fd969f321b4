# tests/core/conftest.py
import pytest

from defpatch.core.xngine import PatchEngine
from defpatch.dom.builder import DocumentBuilder
from defpatch.operations.parser import PatchUnitParser

BASE_XML = """
<Root>
  <Item><id>1</id><tags><li>A</li></tags></Item>
</Root>
"""


def patch_markup(*operations: str) -> str:
    """Wraps operation elements into a patch document."""
    return "<Patch>" + "".join(operations) + "</Patch>"


@pytest.fixture
def builder():
    return DocumentBuilder(list_tags=["li"], root_children_are_list_items=True)


@pytest.fixture
def unit_parser():
    return PatchUnitParser()


@pytest.fixture
def engine():
    return PatchEngine()


@pytest.fixture
def apply_patches(builder, unit_parser, engine):
    """
    Returns a helper: apply_patches(base_xml, patch_xml, ...) -> (document, report).
    Extra keyword arguments are passed on to PatchEngine.run.
    """
    def _apply(base_xml, *patch_xmls, **run_kwargs):
        document = builder.parse(base_xml, source="base.xml")
        units = [unit_parser.parse(xml, name=f"unit{i}") for i, xml in enumerate(patch_xmls, start=1)]
        report = engine.run(document, units, **run_kwargs)
        return document, report

    return _apply
