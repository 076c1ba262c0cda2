"""
Shared fixtures for the DocPerm test suite.

The fixture schema models users with embedded emails, a populated-or-bare
father reference, a virtual greeting and a field nobody may touch; plus
articles and notes whose grants come from team ACLs.

Teams:
    editors = {users: [hondanz], teams: [admins]}
    admins  = {users: [zoe]}
"""

import pytest

from authz.docperm.engine import AuthorizationEngine
from authz.docperm.model import AclEntry, Document, Team
from authz.docperm.schema import (
    SchemaIndex,
    array,
    document_type,
    leaf,
    ref,
    subdocuments,
    virtual,
)
from authz.docperm.store import InMemoryDocumentStore

SELF_COMPONENTS = frozenset(
    {"info", "settings", "contactSettings", "contactVisible", "contactHidden"}
)


def self_access(document, principal, action):
    """Users hold every component on their own record and its emails."""
    if principal is not None and principal == document.root.id:
        return SELF_COMPONENTS
    return None


def email_visibility(email):
    return "contactVisible" if email.get("visible") else "contactHidden"


def greeting(user):
    return f"Hello, {user.get('name')}"


def build_schema_index() -> SchemaIndex:
    index = SchemaIndex()
    index.register(
        document_type(
            "Email",
            {
                "address": leaf(email_visibility, kind="str"),
                "visible": leaf("contactSettings", kind="bool"),
            },
            defaults={"read": {"contactVisible"}},
            predicate=self_access,
        )
    )
    index.register(
        document_type(
            "User",
            {
                "name": leaf("info", kind="str"),
                "father": ref("User", "info"),
                "settings": {
                    "rememberMe": leaf("settings", kind="bool"),
                    "lightsaber": leaf("settings", kind="str"),
                },
                "emails": subdocuments("Email", "contactSettings"),
                "tags": array(leaf(kind="str"), "info"),
                "greeting": virtual(greeting, "info"),
                "secret": leaf(),
            },
            defaults={"read": {"info"}},
            predicate=self_access,
        )
    )
    index.register(
        document_type(
            "Article",
            {
                "title": leaf("public", kind="str"),
                "body": leaf("body", kind="str"),
                "notes": leaf("internal", kind="str"),
            },
            defaults={"read": {"public", "body"}},
        )
    )
    index.register(
        document_type(
            "Note",
            {
                "name": leaf("info", kind="str"),
                "secret": leaf(),
            },
        )
    )
    return index


@pytest.fixture
def schema_index():
    """Unfrozen index with the fixture document types."""
    return build_schema_index()


@pytest.fixture
def store():
    """Store with the editors/admins teams."""
    s = InMemoryDocumentStore()
    s.add_team(
        Team("editors", users=["hondanz"], teams=["admins"], name="Editors"),
        Team("admins", users=["zoe"], name="Admins"),
    )
    return s


@pytest.fixture
def engine(schema_index, store):
    """Engine over the fixture index and store."""
    return AuthorizationEngine(schema_index, store)


@pytest.fixture
def luke(store):
    """Luke with one visible and one hidden email."""
    user = Document(
        "User",
        {
            "name": "Luke",
            "father": "darth",
            "settings": {"rememberMe": True, "lightsaber": "blue"},
            "tags": ["jedi"],
            "secret": "I kissed my sister",
        },
        id="luke",
    )
    user.set(
        "emails",
        [
            user.new_child("Email", {"address": "luke@skywalk.er", "visible": True}, id="luke-mail"),
            user.new_child("Email", {"address": "luke@x.wing", "visible": False}, id="luke-secret"),
        ],
    )
    store.add_document(user)
    return user


@pytest.fixture
def darth(store):
    user = Document("User", {"name": "Darth"}, id="darth")
    store.add_document(user)
    return user


@pytest.fixture
def article(store):
    """Article editable by editors (body) and admins (notes)."""
    doc = Document(
        "Article",
        {"title": "A New Hope", "body": "It is a period of civil war.", "notes": "draft"},
        id="a-new-hope",
        acl=[
            AclEntry("editors", "read", "internal"),
            AclEntry("editors", "write", "body"),
            AclEntry("admins", "write", "internal"),
        ],
    )
    store.add_document(doc)
    return doc


@pytest.fixture
def note():
    """Note readable by editors only."""
    return Document(
        "Note",
        {"name": "Death Star plans", "secret": "exhaust port"},
        id="plans",
        acl=[AclEntry("editors", "read", "info")],
    )
