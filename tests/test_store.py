import orjson
import pytest
from cryptography.fernet import Fernet

from sessions.errors import NotFound, StoreError
from utils.store import UserStore, load_schools


def test_update_user_stores_encrypted_password(store, fake_redis):
    store.update_user("ivanov", "secret", True, 1, {"Иванов Иван": "101"})

    raw = fake_redis.hgetall("user:1:ivanov")
    assert b"secret" not in raw[b"password"]
    assert raw[b"is_parent"] == b"1"
    assert orjson.loads(raw[b"children"]) == {"Иванов Иван": "101"}

    school, credentials = store.get_user_auth_data("ivanov", 1)
    assert school.id == 1
    assert credentials.password == "secret"


def test_unknown_user_is_not_found(store):
    with pytest.raises(NotFound):
        store.get_user_auth_data("nobody", 1)
    with pytest.raises(NotFound):
        store.get_user_permission("nobody", 1)


def test_unknown_school_is_not_found(store):
    with pytest.raises(NotFound):
        store.get_school(42)
    with pytest.raises(NotFound):
        store.get_school_permission("not-a-number")


def test_new_users_are_permitted_and_permission_survives_updates(store):
    store.update_user("ivanov", "secret", False, 2, {})
    assert store.get_user_permission("ivanov", 2) is True

    store.set_user_permission("ivanov", 2, False)
    store.update_user("ivanov", "new-secret", False, 2, {})

    assert store.get_user_permission("ivanov", 2) is False
    assert store.get_user_auth_data("ivanov", 2)[1].password == "new-secret"


def test_set_permission_of_unknown_user(store):
    with pytest.raises(NotFound):
        store.set_user_permission("nobody", 1, True)


def test_school_permission_override(store):
    assert store.get_school_permission(1) is True
    assert store.get_school_permission(2) is False

    store.set_school_permission(2, True)
    store.set_school_permission(1, False)

    assert store.get_school_permission(2) is True
    assert store.get_school_permission(1) is False


def test_wrong_key_is_a_store_error(store, fake_redis, schools):
    store.update_user("ivanov", "secret", False, 1, {})
    other = UserStore(fake_redis, Fernet(Fernet.generate_key()), schools)

    with pytest.raises(StoreError) as exc_info:
        other.get_user_auth_data("ivanov", 1)
    assert exc_info.value.status_code == 500


def test_missing_redis_is_a_store_error(fernet, schools):
    store = UserStore(None, fernet, schools)

    assert [s.id for s in store.get_schools()] == [1, 2, 3]
    with pytest.raises(StoreError):
        store.get_user_permission("ivanov", 1)


def test_children_round_trip(store):
    store.update_user("ivanov", "secret", True, 1, {"A": "1", "B": "2"})
    assert store.get_user_children("ivanov", 1) == {"A": "1", "B": "2"}


def test_load_schools_from_file(tmp_path):
    path = tmp_path / "schools.json"
    path.write_bytes(
        orjson.dumps(
            [
                {"id": 7, "name": "Гимназия", "website": "https://gym.example/", "type": "01"},
            ]
        )
    )

    schools = load_schools(str(path))

    assert len(schools) == 1
    assert schools[0].website == "https://gym.example"
    assert schools[0].permission is True
    assert schools[0].public_dict() == {"name": "Гимназия", "id": 7, "website": "https://gym.example"}


def test_load_schools_defaults():
    schools = load_schools("")
    assert schools and schools[0].type == "01"
