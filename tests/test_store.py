import pytest

import database
from database import RecordNotFound
from models import new_id


def make_client(name="Acme"):
    return {"id": new_id("client"), "type": "client", "name": name, "notes": []}


def test_put_and_get_item():
    """Test a stored record comes back with id, type and body merged."""
    item = make_client()
    database.put_item(item)

    stored = database.get_item(item["id"])
    assert stored == item


def test_get_missing_item_returns_none():
    assert database.get_item("client_missing") is None


def test_put_item_overwrites_whole_record():
    """Test put is an upsert: the last full write wins."""
    item = make_client()
    database.put_item({**item, "phone": "123"})
    database.put_item(item)

    stored = database.get_item(item["id"])
    assert "phone" not in stored
    assert stored["name"] == "Acme"


def test_put_item_rejects_unknown_type():
    with pytest.raises(ValueError):
        database.put_item({"id": "widget_1", "type": "widget"})


def test_get_items_by_type_filters_on_discriminator():
    """Test listing by type only returns records of that type."""
    a = make_client("A")
    b = make_client("B")
    task = {"id": new_id("task"), "type": "task", "title": "Call"}
    for item in (a, b, task):
        database.put_item(item)

    clients = database.get_items_by_type("client")
    assert {c["id"] for c in clients} == {a["id"], b["id"]}
    assert [t["id"] for t in database.get_items_by_type("task")] == [task["id"]]
    assert database.get_items_by_type("project") == []


def test_disjoint_partial_updates_do_not_clobber():
    """Test two updates on different fields keep both values."""
    item = make_client()
    database.put_item(item)

    database.update_item(item["id"], {"a": 1})
    updated = database.update_item(item["id"], {"b": 2})

    assert updated["a"] == 1
    assert updated["b"] == 2
    assert updated["name"] == "Acme"
    assert database.get_item(item["id"]) == updated


def test_update_item_ignores_id_and_type():
    item = make_client()
    database.put_item(item)

    assert database.update_item(item["id"], {"id": "client_other"}) is None
    updated = database.update_item(item["id"], {"id": "client_other", "type": "task", "status": "won"})

    assert updated["id"] == item["id"]
    assert updated["type"] == "client"
    assert updated["status"] == "won"
    assert database.get_item("client_other") is None


def test_update_missing_item_raises():
    with pytest.raises(RecordNotFound):
        database.update_item("client_missing", {"name": "x"})


def test_delete_item_is_idempotent():
    """Test a deleted record is gone and deleting again is harmless."""
    item = make_client()
    database.put_item(item)

    database.delete_item(item["id"])
    assert database.get_item(item["id"]) is None
    database.delete_item(item["id"])
    assert database.get_item(item["id"]) is None


def test_get_user_by_email_lowercases_argument():
    user = {"id": new_id("user"), "type": "user", "email": "bob@example.com", "role": "user"}
    # A client with the same email must not match.
    database.put_item({**make_client(), "email": "bob@example.com"})
    database.put_item(user)

    assert database.get_user_by_email("BOB@Example.COM")["id"] == user["id"]
    assert database.get_user_by_email("nobody@example.com") is None


def test_count_items():
    assert database.count_items() == 0
    database.put_item(make_client())
    database.put_item(make_client())
    assert database.count_items() == 2
