from unittest.mock import MagicMock

import pytest

from aggregate_store import (
    MISSING,
    AggregateManager,
    ArgumentError,
    ConfigurationError,
    InMemoryStoreGateway,
    NotFoundError,
    QueryableDateTime,
    SerializationError,
    StoreClosedError,
    StoredDocument,
)
from sample_aggregates import Note, Profile, Session, User


def _seed_profile(gateway, doc_id, **content):
    gateway.upsert(StoredDocument(id=doc_id, body={"type": "profile", "content": content}))


def test_save_then_find_round_trips(manager, gateway):
    manager.save(User(id="u1", name="Ann", age=30))

    assert gateway.get("u1").body == {"type": "user", "content": {"name": "Ann", "age": 30}}
    assert manager.find("u1", User) == User(id="u1", name="Ann", age=30)


def test_untagged_aggregate_is_stored_flat(manager, gateway):
    manager.save(Note(id="n1", title="groceries"))

    assert gateway.get("n1").body == {"title": "groceries", "body": ""}
    assert manager.find("n1", Note) == Note(id="n1", title="groceries")


def test_save_overwrites_existing_document(manager):
    manager.save(User(id="u1", name="Ann", age=30))
    manager.save(User(id="u1", name="Ann", age=31))

    assert manager.find("u1", User).age == 31


def test_save_requires_id(manager):
    with pytest.raises(ArgumentError):
        manager.save(User(name="Ann", age=30))


def test_find_unknown_id_raises(manager):
    with pytest.raises(NotFoundError):
        manager.find("nobody", User)


def test_find_as_wrong_type_raises(manager):
    manager.save(User(id="u1", name="Ann", age=30))
    with pytest.raises(SerializationError):
        manager.find("u1", Profile)


def test_find_optional(manager):
    assert manager.find_optional("u1", User) is None

    user = User(id="u1", name="Ann", age=30)
    manager.save(user)
    assert manager.find_optional("u1", User) == user


def test_find_optional_surfaces_delete_between_calls():
    gateway = MagicMock()
    gateway.exists.return_value = True
    gateway.get.side_effect = NotFoundError("gone")
    manager = AggregateManager(gateway)

    with pytest.raises(NotFoundError):
        manager.find_optional("u1", User)


def test_exists_follows_save_and_delete(manager):
    assert not manager.exists("u1")
    manager.save(User(id="u1", name="Ann", age=30))
    assert manager.exists("u1")
    manager.delete("u1")
    assert not manager.exists("u1")


def test_delete_unknown_id_raises(manager):
    with pytest.raises(NotFoundError):
        manager.delete("nobody")


def test_expiring_aggregate_disappears(manager, gateway, clock):
    session = Session(id="s1", user_id="u1", started=QueryableDateTime.from_epoch_second(100))
    manager.save(session)

    assert gateway.get("s1").expiration == 1800
    clock.advance(1799)
    assert manager.find("s1", Session) == session
    clock.advance(1)
    assert not manager.exists("s1")
    assert manager.find_optional("s1", Session) is None


def test_criteria_match_equal_values(manager):
    manager.save(User(id="u1", name="Ann", age=30))
    manager.save(User(id="u2", name="Bob", age=30))
    manager.save(User(id="u3", name="Cid", age=41))
    manager.save(Note(id="n1", title="age 30"))

    found = manager.find_all_by_criteria(User, {"age": 30})

    assert [user.id for user in found] == ["u1", "u2"]
    assert found[0] == User(id="u1", name="Ann", age=30)


def test_empty_criteria_return_whole_tagged_collection(manager):
    manager.save(User(id="u1", name="Ann", age=30))
    manager.save(Profile(id="p1", handle="ann"))

    assert [user.id for user in manager.find_all_by_criteria(User)] == ["u1"]
    assert [profile.id for profile in manager.find_all_by_criteria(Profile, {})] == ["p1"]


def test_missing_differs_from_null(manager, gateway):
    _seed_profile(gateway, "never-set", handle="a")
    _seed_profile(gateway, "set-null", handle="b", nickname=None)
    _seed_profile(gateway, "set-value", handle="c", nickname="cee")

    missing = manager.find_all_by_criteria(Profile, {"nickname": MISSING})
    null = manager.find_all_by_criteria(Profile, {"nickname": None})
    valued = manager.find_all_by_criteria(Profile, [("nickname", "cee")])

    assert [p.id for p in missing] == ["never-set"]
    assert [p.id for p in null] == ["set-null"]
    assert [p.id for p in valued] == ["set-value"]


def test_criteria_on_untagged_type_raise(manager):
    with pytest.raises(ConfigurationError):
        manager.find_all_by_criteria(Note, {"title": "t"})


def test_criteria_query_reports_malformed_rows(manager, gateway):
    gateway.upsert(StoredDocument(id="p1", body={"type": "profile"}))
    with pytest.raises(SerializationError):
        manager.find_all_by_criteria(Profile)


def test_context_manager_closes_gateway(gateway):
    with AggregateManager(gateway) as manager:
        manager.save(User(id="u1", name="Ann", age=30))

    with pytest.raises(StoreClosedError):
        gateway.exists("u1")


def test_close_passes_timeout_through():
    gateway = MagicMock()
    AggregateManager(gateway, close_timeout=3).close()
    gateway.close.assert_called_once_with(3)

    gateway.reset_mock()
    AggregateManager(gateway, close_timeout=3).close(timeout=0.5)
    gateway.close.assert_called_once_with(0.5)


def test_context_manager_closes_on_error():
    gateway = InMemoryStoreGateway()
    with pytest.raises(NotFoundError):
        with AggregateManager(gateway) as manager:
            manager.find("nobody", User)

    with pytest.raises(StoreClosedError):
        gateway.exists("nobody")


def test_from_settings_opens_mongo_gateway(monkeypatch):
    from aggregate_store import StoreSettings, manager as manager_module

    opened = MagicMock()
    monkeypatch.setattr(manager_module.MongoStoreGateway, "from_settings", opened)
    cfg = StoreSettings(close_timeout_seconds=4)

    manager = AggregateManager.from_settings(cfg)

    opened.assert_called_once_with(cfg)
    assert manager.gateway is opened.return_value
    manager.close()
    opened.return_value.close.assert_called_once_with(4)


def test_scalar_criterion_does_not_match_list_elements(manager):
    manager.save(Profile(id="p1", handle="a", tags=["x", "y"]))

    assert manager.find_all_by_criteria(Profile, {"tags": "x"}) == []
    assert [p.id for p in manager.find_all_by_criteria(Profile, {"tags": ["x", "y"]})] == ["p1"]


def test_delete_expired_document_raises(manager, clock):
    manager.save(Session(id="s1", user_id="u1", started=QueryableDateTime.from_epoch_second(100)))
    clock.advance(1800)

    with pytest.raises(NotFoundError):
        manager.delete("s1")
