import uuid

import pytest

from flickpick.utils.device import clear_device_cache, device_id_or_local, get_device_id


@pytest.fixture(autouse=True)
def fresh_cache():
    clear_device_cache()
    yield
    clear_device_cache()


def test_device_id_is_created_and_persisted(tmp_path):
    path = tmp_path / "nested" / "device_id"
    device_id = get_device_id(path)

    assert uuid.UUID(device_id)
    assert path.read_text(encoding="utf-8").strip() == device_id

    clear_device_cache()
    assert get_device_id(path) == device_id


def test_device_id_is_cached_per_path(tmp_path):
    path = tmp_path / "device_id"
    first = get_device_id(path)
    path.write_text("something-else", encoding="utf-8")

    assert get_device_id(path) == first
    assert get_device_id(tmp_path / "other") != first


def test_blank_file_gets_a_new_id(tmp_path):
    path = tmp_path / "device_id"
    path.write_text("  \n", encoding="utf-8")

    assert uuid.UUID(get_device_id(path))


def test_sent_device_id_wins_over_local_one(app):
    assert device_id_or_local(" phone-1 ") == "phone-1"

    with app.app_context():
        local = device_id_or_local(None)
    assert local == get_device_id(app.config["DEVICE_ID_PATH"])
