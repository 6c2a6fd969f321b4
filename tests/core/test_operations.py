# tests/core/test_operations.py
import pytest

from defpatch.core.context.patch_context import PatchContext
from defpatch.operations.core import OutcomeStatus

from conftest import BASE_XML, patch_markup

ITEMS_XML = """
<Root>
  <Item Name="First"><id>1</id><label lang="en">Old</label><tags><li>A</li></tags></Item>
  <Item><id>2</id></Item>
</Root>
"""


def _item(doc, item_id):
    for item in doc.root.find_children("Item"):
        if item.child_text("id") == item_id:
            return item
    return None


# --- Add ---

def test_add_prepend_list_entry(apply_patches):
    doc, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Add\"><xpath>Root/Item/tags</xpath><order>Prepend</order>"
        "<value><li>B</li></value></Operation>"
    ))

    assert report.succeeded
    assert doc.root.find_child("Item").find_child("tags").to_xml() == "<tags><li>B</li><li>A</li></tags>"


def test_add_appends_by_default(apply_patches):
    doc, _ = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Add\"><xpath>Root/Item/tags</xpath><value><li>B</li><li>C</li></value></Operation>"
    ))

    assert [li.text for li in doc.root.find_child("Item").find_child("tags").children] == ["A", "B", "C"]


def test_add_to_every_target_with_fresh_copies(apply_patches):
    doc, report = apply_patches(ITEMS_XML, patch_markup(
        "<Operation Class=\"Add\"><xpath>Root/Item</xpath><value><extra><li>x</li></extra></value></Operation>"
    ))

    assert report.entries[0].status == OutcomeStatus.APPLIED
    first, second = _item(doc, "1").find_child("extra"), _item(doc, "2").find_child("extra")
    assert first == second
    assert first is not second


def test_add_non_list_twice_collides(apply_patches):
    add = "<Operation Class=\"Add\"><xpath>Root/Item</xpath><value><name>x</name></value></Operation>"
    doc, report = apply_patches(BASE_XML, patch_markup(add), patch_markup(add))

    assert report.units[0].outcomes[0].status == OutcomeStatus.APPLIED
    second = report.units[1].outcomes[0]
    assert second.status == OutcomeStatus.FAILED
    assert second.reason.startswith("CollisionError")
    assert len(doc.root.find_child("Item").find_children("name")) == 1


def test_collision_is_checked_before_any_mutation(apply_patches):
    # Item 2 already has a label; item 1 must not be touched either
    doc, report = apply_patches(
        "<Root><Item><id>1</id></Item><Item><id>2</id><label>x</label></Item></Root>",
        patch_markup("<Operation Class=\"Add\"><xpath>Root/Item</xpath><value><label>y</label></value></Operation>"),
    )

    assert not report.succeeded
    assert _item(doc, "1").find_child("label") is None


def test_add_under_root_element_may_repeat(apply_patches):
    doc, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Add\"><xpath>Root</xpath><value><Item><id>2</id></Item></value></Operation>"
    ))

    assert report.succeeded
    assert len(doc.root.find_children("Item")) == 2


def test_add_empty_target_leaves_tree_unchanged(builder, apply_patches):
    before = builder.parse(BASE_XML)
    doc, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Add\"><xpath>Root/Missing</xpath><value><li>B</li></value></Operation>"
    ))

    assert report.entries[0].status == OutcomeStatus.FAILED
    assert report.entries[0].reason.startswith("EmptyTargetError")
    assert doc.node == before.node


@pytest.mark.parametrize("operation", [
    "<Operation Class=\"Insert\"><xpath>Root/Missing</xpath><value><x /></value></Operation>",
    "<Operation Class=\"Remove\"><xpath>Root/Missing</xpath></Operation>",
    "<Operation Class=\"Replace\"><xpath>Root/Missing</xpath><value><x /></value></Operation>",
    "<Operation Class=\"AttributeAdd\"><xpath>Root/Missing</xpath><attribute>a</attribute>"
    "<value>1</value></Operation>",
    "<Operation Class=\"AttributeSet\"><xpath>Root/Missing</xpath><attribute>a</attribute>"
    "<value>1</value></Operation>",
    "<Operation Class=\"AttributeRemove\"><xpath>Root/Missing</xpath><attribute>a</attribute></Operation>",
    "<Operation Class=\"SetName\"><xpath>Root/Missing</xpath><name>other</name></Operation>",
    "<Operation Class=\"AddModExtension\"><xpath>Root/Missing</xpath><value><li>x</li></value></Operation>",
])
def test_empty_target_leaves_tree_unchanged_for_every_kind(builder, apply_patches, operation):
    before = builder.parse(BASE_XML)
    doc, report = apply_patches(BASE_XML, patch_markup(operation))

    assert report.entries[0].status in (OutcomeStatus.FAILED, OutcomeStatus.SKIPPED)
    assert doc.node == before.node


def test_add_list_entry_twice_applies_both(apply_patches):
    add = "<Operation Class=\"Add\"><xpath>Root/Item/tags</xpath><value><li>B</li></value></Operation>"
    doc, report = apply_patches(BASE_XML, patch_markup(add), patch_markup(add))

    assert [entry.status for entry in report.entries] == [OutcomeStatus.APPLIED, OutcomeStatus.APPLIED]
    assert [li.text for li in doc.root.find_child("Item").find_child("tags").children] == ["A", "B", "B"]


def test_add_without_element_payload_fails(apply_patches):
    _, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Add\"><xpath>Root/Item</xpath><value>just text</value></Operation>"
    ))

    assert report.entries[0].reason.startswith("PayloadError")


# --- Insert ---

def test_insert_before_by_default_and_after_with_append(apply_patches):
    doc, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Insert\"><xpath>Root/Item/tags/li</xpath><value><li>before</li></value></Operation>",
        "<Operation Class=\"Insert\"><xpath>Root/Item/id</xpath><order>Append</order>"
        "<value><label>after id</label></value></Operation>",
    ))

    assert report.succeeded
    item = doc.root.find_child("Item")
    assert [c.tag for c in item.children] == ["id", "label", "tags"]
    assert [li.text for li in item.find_child("tags").children] == ["before", "A"]


def test_insert_colliding_sibling_fails(apply_patches):
    _, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Insert\"><xpath>Root/Item/id</xpath><value><tags /></value></Operation>"
    ))

    assert report.entries[0].reason.startswith("CollisionError")


def test_insert_next_to_root_element_fails(apply_patches):
    _, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Insert\"><xpath>Root</xpath><value><Other /></value></Operation>"
    ))

    assert report.entries[0].status == OutcomeStatus.FAILED


# --- Remove ---

def test_remove_node(apply_patches):
    doc, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Remove\"><xpath>Root/Item/id</xpath></Operation>"
    ))

    assert report.succeeded
    assert doc.root.find_child("Item").to_xml() == "<Item><tags><li>A</li></tags></Item>"


def test_remove_attribute_and_text(apply_patches):
    doc, report = apply_patches(ITEMS_XML, patch_markup(
        "<Operation Class=\"Remove\"><xpath>Root/Item/label/@lang</xpath></Operation>",
        "<Operation Class=\"Remove\"><xpath>Root/Item/label/text()</xpath></Operation>",
    ))

    assert report.succeeded
    label = _item(doc, "1").find_child("label")
    assert label.attrs == {}
    assert label.text is None


def test_remove_missing_target_fails(apply_patches):
    _, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Remove\"><xpath>Root/Item/missing</xpath></Operation>"
    ))

    assert report.entries[0].status == OutcomeStatus.FAILED


def test_remove_missing_target_can_be_tolerated(builder, unit_parser, engine):
    doc = builder.parse(BASE_XML)
    run = PatchContext(doc)
    run.tolerate_missing_removals = True
    unit = unit_parser.parse(patch_markup(
        "<Operation Class=\"Remove\"><xpath>Root/Item/missing</xpath></Operation>"
    ))

    report = engine.run(doc, [unit], context=run)
    assert report.entries[0].status == OutcomeStatus.SKIPPED
    assert report.succeeded


# --- Replace ---

def test_replace_node_at_same_position(apply_patches):
    doc, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Replace\"><xpath>Root/Item/id</xpath><value><key>9</key></value></Operation>"
    ))

    assert report.succeeded
    assert doc.root.find_child("Item").to_xml() == "<Item><key>9</key><tags><li>A</li></tags></Item>"


def test_replace_text_keeps_tag_and_attributes(apply_patches):
    doc, report = apply_patches(ITEMS_XML, patch_markup(
        "<Operation Class=\"Replace\"><xpath>Root/Item/label/text()</xpath><value>New</value></Operation>"
    ))

    assert report.succeeded
    label = _item(doc, "1").find_child("label")
    assert label.to_xml() == '<label lang="en">New</label>'


def test_replace_attribute_value(apply_patches):
    doc, _ = apply_patches(ITEMS_XML, patch_markup(
        "<Operation Class=\"Replace\"><xpath>Root/Item/@Name</xpath><value>Renamed</value></Operation>"
    ))

    assert _item(doc, "1").attrs["Name"] == "Renamed"


def test_replace_with_existing_sibling_tag_collides(apply_patches):
    _, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Replace\"><xpath>Root/Item/id</xpath><value><tags /></value></Operation>"
    ))

    assert report.entries[0].reason.startswith("CollisionError")


def test_replace_node_with_text_payload_fails(apply_patches):
    _, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"Replace\"><xpath>Root/Item/id</xpath><value>2</value></Operation>"
    ))

    assert report.entries[0].reason.startswith("PayloadError")


# --- Attributes ---

def test_attribute_add_only_where_absent(apply_patches):
    doc, report = apply_patches(ITEMS_XML, patch_markup(
        "<Operation Class=\"AttributeAdd\"><xpath>Root/Item</xpath><attribute>Name</attribute>"
        "<value>Added</value></Operation>"
    ))

    assert report.entries[0].status == OutcomeStatus.APPLIED
    assert _item(doc, "1").attrs["Name"] == "First"
    assert _item(doc, "2").attrs["Name"] == "Added"


def test_attribute_add_everywhere_present_is_skipped(apply_patches):
    _, report = apply_patches(ITEMS_XML, patch_markup(
        "<Operation Class=\"AttributeAdd\"><xpath>Root/Item[id=\"1\"]</xpath><attribute>Name</attribute>"
        "<value>Added</value></Operation>"
    ))

    assert report.entries[0].status == OutcomeStatus.SKIPPED
    assert report.succeeded


def test_attribute_set_overwrites(apply_patches):
    doc, _ = apply_patches(ITEMS_XML, patch_markup(
        "<Operation Class=\"AttributeSet\"><xpath>Root/Item</xpath><attribute>Name</attribute>"
        "<value>Same</value></Operation>"
    ))

    assert [i.attrs["Name"] for i in doc.root.children] == ["Same", "Same"]


def test_attribute_remove(apply_patches):
    doc, report = apply_patches(ITEMS_XML, patch_markup(
        "<Operation Class=\"AttributeRemove\"><xpath>Root/Item</xpath><attribute>Name</attribute></Operation>",
        "<Operation Class=\"AttributeRemove\"><xpath>Root/Item</xpath><attribute>Name</attribute></Operation>",
    ))

    assert [e.status for e in report.entries] == [OutcomeStatus.APPLIED, OutcomeStatus.SKIPPED]
    assert all("Name" not in i.attrs for i in doc.root.children)


def test_attribute_operation_on_missing_target_fails(apply_patches):
    _, report = apply_patches(ITEMS_XML, patch_markup(
        "<Operation Class=\"AttributeSet\"><xpath>Root/Nothing</xpath><attribute>a</attribute>"
        "<value>1</value></Operation>"
    ))

    assert report.entries[0].reason.startswith("EmptyTargetError")


# --- SetName ---

def test_set_name_keeps_children_and_attributes(apply_patches):
    doc, report = apply_patches(ITEMS_XML, patch_markup(
        "<Operation Class=\"SetName\"><xpath>Root/Item/label</xpath><name>title</name></Operation>"
    ))

    assert report.succeeded
    title = _item(doc, "1").find_child("title")
    assert title.to_xml() == '<title lang="en">Old</title>'
    assert _item(doc, "1").find_child("label") is None


def test_set_name_keeps_position_and_children(apply_patches):
    doc, _ = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"SetName\"><xpath>Root/Item/tags</xpath><name>labels</name></Operation>"
    ))

    assert doc.root.find_child("Item").to_xml() == "<Item><id>1</id><labels><li>A</li></labels></Item>"


def test_set_name_collision(apply_patches):
    _, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"SetName\"><xpath>Root/Item/id</xpath><name>tags</name></Operation>"
    ))

    assert report.entries[0].reason.startswith("CollisionError")


# --- AddModExtension ---

def test_add_extension_creates_container_and_wraps(apply_patches):
    doc, report = apply_patches(BASE_XML, patch_markup(
        "<Operation Class=\"AddModExtension\"><xpath>Root/Item</xpath>"
        "<value><li Class=\"MyExt\"><power>5</power></li></value></Operation>",
        "<Operation Class=\"AddModExtension\"><xpath>Root/Item</xpath>"
        "<value><power>7</power></value></Operation>",
    ))

    assert report.succeeded
    extensions = doc.root.find_child("Item").find_child("modExtensions")
    assert extensions.to_xml() == (
        '<modExtensions><li Class="MyExt"><power>5</power></li><li><power>7</power></li></modExtensions>'
    )
