# tests/core/test_path_query.py
import pytest

from defpatch.core.errors import PayloadError
from defpatch.query.evaluator import PathEvaluator
from defpatch.query.model import AttributeTarget, Axis, NodeTarget, Selector, TextTarget
from defpatch.query.parser import parse_path

DEFS_XML = """
<Defs>
  <ThingDef Name="BaseGun" Abstract="True"><label>gun</label></ThingDef>
  <ThingDef ParentName="BaseGun"><defName>Pistol</defName><label lang="en">pistol</label></ThingDef>
  <ThingDef Name="BaseRifle" ParentName="BaseGun" Abstract="True"><range>30</range></ThingDef>
  <ThingDef ParentName="BaseRifle"><defName>Rifle</defName></ThingDef>
  <ThingDef><defName>Knife</defName><comps><li Class="CompA" /><li Class="CompB" /></comps></ThingDef>
</Defs>
"""


@pytest.fixture
def defs(builder):
    return builder.parse(DEFS_XML)


@pytest.fixture
def evaluator(defs):
    return PathEvaluator(defs, name_attribute="Name", parent_attribute="ParentName")


def _def_names(targets):
    return [t.node.child_text("defName") for t in targets]


# --- Parsing ---

def test_parse_child_and_descendant_steps():
    expr = parse_path('Defs//li[@Class="CompA"]')

    assert [s.axis for s in expr.steps] == [Axis.CHILD, Axis.DESCENDANT]
    assert expr.steps[1].tag == "li"
    assert str(expr) == 'Defs//li[@Class="CompA"]'


def test_parse_leading_slash_is_absolute():
    assert parse_path("/Defs/ThingDef").steps == parse_path("Defs/ThingDef").steps


def test_parse_text_and_attribute_tails():
    assert parse_path("Defs/ThingDef/label/text()").selector == Selector.TEXT

    expr = parse_path("Defs/ThingDef/@ParentName")
    assert expr.selector == Selector.ATTRIBUTE
    assert expr.attribute == "ParentName"


@pytest.mark.parametrize("source", [
    "",
    "   ",
    'Defs/ThingDef[defName="A" and label="b"]',
    "Defs/ThingDef[1]",
    'Defs/ThingDef[comps/li="x"]',
    'Defs/ThingDef[defName="A"][label="b"]',
    'Defs/ThingDef[contains(defName, "A")]',
    "count(Defs)",
    "Defs/",
    'Defs/ThingDef[defName="A"',
    'Defs/ThingDef[defName="A]',
    'Defs/ThingDef[defName!="A"]',
    "Defs/ThingDef/@Name/label",
])
def test_unsupported_syntax_raises_payload_error(source):
    with pytest.raises(PayloadError):
        parse_path(source)


# --- Evaluation ---

def test_first_step_names_the_root_element(defs, evaluator):
    targets = evaluator.evaluate(parse_path("Defs"))

    assert len(targets) == 1
    assert targets[0].node is defs.root
    assert targets[0].parent is defs.node


def test_child_text_predicate(evaluator):
    targets = evaluator.evaluate(parse_path('Defs/ThingDef[defName="Rifle"]'))

    assert _def_names(targets) == ["Rifle"]


def test_disjunctive_predicate_selects_each_branch_once(builder):
    doc = builder.parse(
        "<Root><Item><id>X</id></Item><Item><id>Y</id></Item><Item><id>Z</id></Item></Root>"
    )
    targets = PathEvaluator(doc).evaluate(parse_path('Root/Item[id="X" or id="Z" or id="X"]'))

    assert [t.node.child_text("id") for t in targets] == ["X", "Z"]


def test_predicate_comparison_is_exact(evaluator):
    assert evaluator.evaluate(parse_path('Defs/ThingDef[defName="rifle"]')) == []


def test_attribute_presence_and_equality(evaluator):
    abstract = evaluator.evaluate(parse_path("Defs/ThingDef[@Abstract]"))
    named = evaluator.evaluate(parse_path('Defs/ThingDef[@Name="BaseRifle"]'))

    assert len(abstract) == 2
    assert named[0].node.child_text("range") == "30"


def test_descendant_axis_in_document_order(evaluator):
    targets = evaluator.evaluate(parse_path("Defs//li"))

    assert [t.node.attrs["Class"] for t in targets] == ["CompA", "CompB"]


def test_descendant_results_have_no_duplicates(builder):
    doc = builder.parse("<Root><a><a><b>1</b></a></a></Root>")

    targets = PathEvaluator(doc).evaluate(parse_path("Root//a//b"))
    assert len(targets) == 1


def test_wildcard_step(evaluator):
    targets = evaluator.evaluate(parse_path('Defs/*[defName="Knife"]/comps'))

    assert len(targets) == 1
    assert isinstance(targets[0], NodeTarget)


def test_text_targets(evaluator):
    targets = evaluator.evaluate(parse_path('Defs/ThingDef[defName="Pistol"]/label/text()'))

    assert len(targets) == 1
    assert isinstance(targets[0], TextTarget)
    assert targets[0].node.text == "pistol"


def test_attribute_targets_only_where_present(evaluator):
    targets = evaluator.evaluate(parse_path("Defs/ThingDef/@ParentName"))

    assert len(targets) == 3
    assert all(isinstance(t, AttributeTarget) for t in targets)


def test_zero_matches_is_not_an_error(evaluator):
    assert evaluator.evaluate(parse_path("Defs/Missing/child")) == []
    assert evaluator.exists(parse_path("Defs/Missing")) is False
    assert evaluator.exists(parse_path("Defs/ThingDef")) is True


def test_evaluation_sees_live_mutations(defs, evaluator):
    expr = parse_path('Defs/ThingDef[defName="Knife"]')
    assert len(evaluator.evaluate(expr)) == 1

    knife = evaluator.evaluate(expr)[0]
    knife.parent.children.remove(knife.node)
    assert evaluator.evaluate(expr) == []


# --- Template subtype query ---

def test_inheritors_are_transitive_and_in_document_order(evaluator):
    inheritors = evaluator.inheritors_of("BaseGun")

    assert [n.attrs.get("Name") or n.child_text("defName") for n in inheritors] == [
        "Pistol", "BaseRifle", "Rifle",
    ]


def test_direct_inheritors_only(evaluator):
    inheritors = evaluator.inheritors_of("BaseGun", transitive=False)

    assert len(inheritors) == 2


def test_evaluate_with_inheritors(evaluator):
    targets = evaluator.evaluate(parse_path('Defs/ThingDef[@Name="BaseGun"]'), include_inheritors=True)

    assert len(targets) == 4
    assert targets[0].node.attrs["Name"] == "BaseGun"
    assert _def_names(targets[1:]) == ["Pistol", None, "Rifle"]


def test_inheritor_query_does_not_expand_inheritance(defs, evaluator):
    before = defs.clone()
    evaluator.evaluate(parse_path('Defs/ThingDef[@Name="BaseGun"]'), include_inheritors=True)

    assert defs.node == before.node
