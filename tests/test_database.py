import json

import pytest

from chirpy.core.database import Database
from chirpy.core.errors import ChirpNotFoundError, ForbiddenError, NotFoundError, UserNotFoundError
from chirpy.core.storage import JsonFilePersistence, MemoryPersistence


def test_startup_reset_clears_previous_data(settings):
    first = Database(JsonFilePersistence(settings.database_path))
    first.create_user("alice@example.com", "hash")
    first.create_chirp("hello", 1)

    second = Database(JsonFilePersistence(settings.database_path))
    assert second.get_chirps() == []
    with pytest.raises(UserNotFoundError):
        second.get_user_by_email("alice@example.com")


def test_startup_without_reset_keeps_data(settings):
    first = Database(JsonFilePersistence(settings.database_path))
    first.create_chirp("hello", 1)

    second = Database(JsonFilePersistence(settings.database_path), reset=False)
    assert [c.body for c in second.get_chirps()] == ["hello"]


def test_chirp_ids_start_at_one_and_increase(db):
    ids = [db.create_chirp(body, 1).id for body in ("hello", "a joke", "ok")]
    assert ids == [1, 2, 3]


def test_chirp_id_is_max_plus_one_after_deleting_a_middle_row(db):
    for body in ("a", "b", "c"):
        db.create_chirp(body, 1)
    db.delete_chirp(1, 2)
    assert db.create_chirp("d", 1).id == 4


def test_chirp_id_is_reused_after_deleting_the_highest_row(db):
    db.create_chirp("a", 1)
    db.create_chirp("b", 1)
    db.delete_chirp(1, 2)
    assert db.create_chirp("c", 1).id == 2


def test_create_chirp_persists_to_file(db, settings):
    db.create_chirp("hello", 7)
    with open(settings.database_path, encoding="utf-8") as f:
        doc = json.load(f)
    assert doc["chirps"] == {"1": {"id": 1, "body": "hello", "author_id": 7}}


def test_get_chirps_sorts_and_filters(db):
    db.create_chirp("one", 1)
    db.create_chirp("two", 2)
    db.create_chirp("three", 1)
    db.create_chirp("four", 1)

    assert [c.id for c in db.get_chirps()] == [1, 2, 3, 4]
    assert [c.id for c in db.get_chirps(sort="desc")] == [4, 3, 2, 1]
    assert [c.id for c in db.get_chirps(author_id=1, sort="desc")] == [4, 3, 1]
    assert [c.id for c in db.get_chirps(author_id=2)] == [2]
    assert db.get_chirps(author_id=99) == []


def test_get_chirps_treats_zero_and_none_as_no_filter(db):
    db.create_chirp("one", 1)
    db.create_chirp("two", 2)
    assert len(db.get_chirps(author_id=0)) == 2
    assert len(db.get_chirps(author_id=None, sort=None)) == 2


def test_get_chirps_unknown_sort_is_ascending(db):
    for body in ("a", "b", "c"):
        db.create_chirp(body, 1)
    assert [c.id for c in db.get_chirps(sort="sideways")] == [1, 2, 3]


def test_get_chirp_by_id(db):
    db.create_chirp("hello", 1)
    chirp = db.get_chirp_by_id(1)
    assert (chirp.id, chirp.body, chirp.author_id) == (1, "hello", 1)


def test_get_chirp_by_id_out_of_range(db):
    db.create_chirp("hello", 1)
    with pytest.raises(ChirpNotFoundError):
        db.get_chirp_by_id(2)
    with pytest.raises(NotFoundError):
        db.get_chirp_by_id(0)


def test_get_chirp_by_id_is_bounded_by_table_size(db):
    for body in ("a", "b", "c"):
        db.create_chirp(body, 1)
    db.delete_chirp(1, 1)
    # Two rows remain, so id 3 is rejected although it exists.
    with pytest.raises(ChirpNotFoundError):
        db.get_chirp_by_id(3)
    assert db.get_chirp_by_id(2).body == "b"
    # Id 1 is in bounds but was deleted.
    with pytest.raises(ChirpNotFoundError):
        db.get_chirp_by_id(1)


def test_returned_chirps_are_copies(db):
    db.create_chirp("hello", 1)
    chirp = db.get_chirp_by_id(1)
    chirp.body = "changed"
    assert db.get_chirp_by_id(1).body == "hello"


def test_delete_chirp_by_owner(db):
    db.create_chirp("hello", 1)
    db.delete_chirp(1, 1)
    assert db.get_chirps() == []


def test_delete_chirp_by_other_user_is_forbidden(db):
    db.create_chirp("hello", 1)
    with pytest.raises(ForbiddenError):
        db.delete_chirp(2, 1)
    assert [c.id for c in db.get_chirps()] == [1]


def test_delete_missing_chirp_is_forbidden(db):
    with pytest.raises(ForbiddenError):
        db.delete_chirp(1, 42)


def test_create_user_defaults(db):
    user = db.create_user("alice@example.com", "hash1")
    assert user.id == 1
    assert user.is_upgraded is False
    assert db.create_user("bob@example.com", "hash2").id == 2


def test_get_user_by_email(db):
    db.create_user("alice@example.com", "hash1")
    db.create_user("bob@example.com", "hash2")
    db.create_user("carol@example.com", "hash3")
    assert db.get_user_by_email("bob@example.com").id == 2
    assert db.get_user_by_email("carol@example.com").id == 3


def test_get_user_by_email_not_found(db):
    db.create_user("alice@example.com", "hash1")
    with pytest.raises(UserNotFoundError):
        db.get_user_by_email("mallory@example.com")


def test_get_user_by_email_on_empty_table(db):
    with pytest.raises(UserNotFoundError):
        db.get_user_by_email("alice@example.com")


def test_store_does_not_enforce_unique_emails(db):
    first = db.create_user("alice@example.com", "hash1")
    second = db.create_user("alice@example.com", "hash2")
    assert first.id != second.id
    assert db.get_user_by_email("alice@example.com").id == first.id


def test_get_user_by_id(db):
    db.create_user("alice@example.com", "hash1")
    assert db.get_user_by_id(1).email == "alice@example.com"
    with pytest.raises(UserNotFoundError):
        db.get_user_by_id(2)


def test_update_user_overwrites_only_given_fields(db):
    db.create_user("alice@example.com", "hash1")

    user = db.update_user(1, email="alice@new.example.com")
    assert (user.email, user.password_hash) == ("alice@new.example.com", "hash1")

    user = db.update_user(1, password_hash="hash2")
    assert (user.email, user.password_hash) == ("alice@new.example.com", "hash2")

    user = db.update_user(1, email="", password_hash=None)
    assert (user.email, user.password_hash) == ("alice@new.example.com", "hash2")
    assert db.get_user_by_id(1).password_hash == "hash2"


def test_update_missing_user(db):
    with pytest.raises(UserNotFoundError):
        db.update_user(5, email="x@example.com")


def test_set_upgraded(db):
    db.create_user("alice@example.com", "hash1")
    assert db.set_upgraded(1, True).is_upgraded is True
    assert db.get_user_by_id(1).is_upgraded is True
    assert db.set_upgraded(1, False).is_upgraded is False


def test_set_upgraded_missing_user(db):
    with pytest.raises(UserNotFoundError):
        db.set_upgraded(3, True)


def test_failed_mutation_does_not_save():
    persistence = MemoryPersistence()
    db = Database(persistence)
    db.create_chirp("hello", 1)
    before = persistence.document
    with pytest.raises(ForbiddenError):
        db.delete_chirp(2, 1)
    assert persistence.document == before
