"""
Unit tests for element-wise array operations.

Tests cover:
- push/remove/set on arrays of subdocuments
- Array-level and element-level gates
- Atomicity of rejected operations
- The array gate on set (configurable)
"""

import pytest

from authz.docperm.arrays import ArrayElementOps
from authz.docperm.config import EngineConfig
from authz.docperm.errors import NotFoundError, PermissionDenied, SchemaViolation
from authz.docperm.model import Document
from authz.docperm.mutator import DocumentMutator
from authz.docperm.resolver import ComponentResolver
from authz.docperm.schema import SchemaIndex, document_type, leaf, subdocuments
from authz.docperm.store import InMemoryDocumentStore
from authz.docperm.teams import TeamExpander


def make_ops(index, store=None, config=None):
    resolver = ComponentResolver(index, TeamExpander(store or InMemoryDocumentStore()), config)
    mutator = DocumentMutator(index, resolver, config)
    return ArrayElementOps(index, resolver, mutator, config)


def make_inventory_index(owner_write=(), item_write=()):
    """Owner.items holds Item subdocuments; write grants come from defaults."""
    index = SchemaIndex()
    index.register(
        document_type(
            "Item",
            {"name": leaf("items", kind="str"), "secret": leaf("hidden", kind="str")},
            defaults={"write": set(item_write)},
        )
    )
    index.register(
        document_type(
            "Owner",
            {"label": leaf("label"), "items": subdocuments("Item", "items")},
            defaults={"write": set(owner_write)},
        )
    )
    return index


class TestArrayElementOps:
    """Tests against the fixture User.emails array."""

    @pytest.fixture
    def ops(self, schema_index, store):
        return make_ops(schema_index, store)

    @pytest.mark.asyncio
    async def test_push(self, ops, luke):
        email = await ops.push(luke, "emails", "luke", {"address": "luke@jedi.org", "visible": True})

        assert isinstance(email, Document)
        assert email.parent is luke
        assert email.type_name == "Email"
        assert email.get("address") == "luke@jedi.org"
        assert luke.get("emails")[-1] is email
        assert len(luke.get("emails")) == 3

    @pytest.mark.asyncio
    async def test_push_with_element_id(self, ops, luke):
        email = await ops.push(luke, "emails", "luke", {"address": "a@b.c"}, element_id="third")

        assert email.id == "third"

    @pytest.mark.asyncio
    async def test_push_duplicate_element_id(self, ops, luke):
        with pytest.raises(SchemaViolation, match="already exists"):
            await ops.push(luke, "emails", "luke", {"address": "a@b.c"}, element_id="luke-mail")

        assert len(luke.get("emails")) == 2

    @pytest.mark.asyncio
    async def test_push_creates_array(self, ops, darth):
        await ops.push(darth, "emails", "darth", {"address": "vader@empire.gov"})

        assert len(darth.get("emails")) == 1

    @pytest.mark.asyncio
    async def test_push_denied_by_array_gate(self, ops, luke):
        before = luke.to_dict()

        with pytest.raises(PermissionDenied) as exc_info:
            await ops.push(luke, "emails", "leia", {"address": "leia@alderaan.org"})

        assert exc_info.value.path == "emails"
        assert exc_info.value.component == "contactSettings"
        assert luke.to_dict() == before

    @pytest.mark.asyncio
    async def test_push_invalid_element(self, ops, luke):
        before = luke.to_dict()

        with pytest.raises(SchemaViolation):
            await ops.push(luke, "emails", "luke", {"address": 42})

        assert luke.to_dict() == before

    @pytest.mark.asyncio
    async def test_push_round_trip(self, ops, luke):
        """push then remove restores the array."""
        before = luke.to_dict()

        email = await ops.push(luke, "emails", "luke", {"address": "tmp@skywalk.er"})
        removed = await ops.remove(luke, "emails", "luke", email.id)

        assert removed is email
        assert luke.to_dict() == before

    @pytest.mark.asyncio
    async def test_push_round_trip_without_array(self, ops, darth):
        """An array created by push disappears when its last element is removed."""
        before = darth.to_dict()

        email = await ops.push(darth, "emails", "darth", {"address": "vader@empire.gov"})
        await ops.remove(darth, "emails", "darth", email.id)

        assert darth.to_dict() == before
        assert not darth.has("emails")

    @pytest.mark.asyncio
    async def test_remove_keeps_existing_empty_array(self, ops, darth):
        darth.set("emails", [])

        email = await ops.push(darth, "emails", "darth", {"address": "vader@empire.gov"})
        await ops.remove(darth, "emails", "darth", email.id)

        assert darth.get("emails") == []

    @pytest.mark.asyncio
    async def test_remove_keeps_array_with_remaining_elements(self, ops, darth):
        first = await ops.push(darth, "emails", "darth", {"address": "vader@empire.gov"})
        second = await ops.push(darth, "emails", "darth", {"address": "anakin@tatooine.net"})

        await ops.remove(darth, "emails", "darth", first.id)

        assert darth.get("emails") == [second]

    @pytest.mark.asyncio
    async def test_remove_unknown_element(self, ops, luke):
        with pytest.raises(NotFoundError) as exc_info:
            await ops.remove(luke, "emails", "luke", "missing")

        assert exc_info.value.resource_type == "element"
        assert exc_info.value.resource_id == "missing"

    @pytest.mark.asyncio
    async def test_remove_denied(self, ops, luke):
        with pytest.raises(PermissionDenied):
            await ops.remove(luke, "emails", "leia", "luke-mail")

        assert len(luke.get("emails")) == 2

    @pytest.mark.asyncio
    async def test_set(self, ops, luke):
        """set merges partial input into one element."""
        element = await ops.set(luke, "emails", "luke", "luke-mail", {"visible": False})

        assert element.id == "luke-mail"
        assert element.get("visible") is False
        assert element.get("address") == "luke@skywalk.er"

    @pytest.mark.asyncio
    async def test_set_unknown_element(self, ops, luke):
        with pytest.raises(NotFoundError):
            await ops.set(luke, "emails", "luke", "missing", {"visible": True})

    @pytest.mark.asyncio
    async def test_set_denied(self, ops, luke):
        before = luke.to_dict()

        with pytest.raises(PermissionDenied):
            await ops.set(luke, "emails", "leia", "luke-mail", {"visible": False})

        assert luke.to_dict() == before

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["name", "tags", "settings", "nope"])
    async def test_path_must_be_subdocument_array(self, ops, luke, path):
        with pytest.raises(SchemaViolation, match="not an array of subdocuments"):
            await ops.push(luke, path, "luke", {})


class TestArrayGates:
    """Array-level versus element-level write components."""

    @pytest.fixture
    def owner(self):
        doc = Document("Owner", {"label": "hangar"}, id="hangar")
        doc.set("items", [doc.new_child("Item", {"name": "hyperdrive"}, id="item-1")])
        return doc

    @pytest.mark.asyncio
    async def test_push_with_unauthorized_element_field(self, owner):
        """The element's own gates apply to pushed input."""
        ops = make_ops(make_inventory_index(owner_write={"items"}, item_write={"items"}))

        with pytest.raises(PermissionDenied) as exc_info:
            await ops.push(owner, "items", "p", {"name": "x", "secret": "y"})

        assert exc_info.value.path == "secret"
        assert len(owner.get("items")) == 1

    @pytest.mark.asyncio
    async def test_push_with_authorized_element_fields(self, owner):
        ops = make_ops(make_inventory_index(owner_write={"items"}, item_write={"items", "hidden"}))

        item = await ops.push(owner, "items", "p", {"name": "x", "secret": "y"})

        assert item.get("secret") == "y"
        assert len(owner.get("items")) == 2

    @pytest.mark.asyncio
    async def test_set_checks_array_component_by_default(self, owner):
        ops = make_ops(make_inventory_index(item_write={"items"}))

        with pytest.raises(PermissionDenied) as exc_info:
            await ops.set(owner, "items", "p", "item-1", {"name": "motivator"})

        assert exc_info.value.path == "items"
        assert owner.get("items")[0].get("name") == "hyperdrive"

    @pytest.mark.asyncio
    async def test_set_without_array_check(self, owner):
        """With the array gate disabled only the element's gates apply."""
        config = EngineConfig(array_set_checks_array_component=False)
        ops = make_ops(make_inventory_index(item_write={"items"}), config=config)

        await ops.set(owner, "items", "p", "item-1", {"name": "motivator"})

        assert owner.get("items")[0].get("name") == "motivator"
        with pytest.raises(PermissionDenied):
            await ops.push(owner, "items", "p", {"name": "x"})

    @pytest.mark.asyncio
    async def test_array_gate_does_not_grant_element_fields(self, owner):
        ops = make_ops(make_inventory_index(owner_write={"items"}))

        with pytest.raises(PermissionDenied) as exc_info:
            await ops.set(owner, "items", "p", "item-1", {"name": "motivator"})

        assert exc_info.value.path == "name"
