import json
import os

import pytest

from sprite_lab.cache import DescriptionCache, sha256_hex

TTL_MS = 60 * 60 * 1000


@pytest.fixture
def cache(tmp_path, fake_clock):
    return DescriptionCache(tmp_path / "entries", TTL_MS, clock=fake_clock)


def write_entry(cache, key, payload):
    cache.cache_dir.mkdir(parents=True, exist_ok=True)
    cache.path_for_key(key).write_text(payload, encoding="utf-8")


def test_sha256_hex_is_stable_for_str_and_bytes():
    assert sha256_hex("abc") == sha256_hex(b"abc")
    assert sha256_hex("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_directory_is_created_lazily_on_first_write(cache):
    assert not cache.cache_dir.exists()
    assert cache.get("k1") is None
    assert not cache.cache_dir.exists()

    cache.set("k1", {"a": 1})

    assert cache.cache_dir.is_dir()
    assert cache.path_for_key("k1").name == "k1.json"


def test_set_writes_pretty_entry_with_timestamp(cache, fake_clock):
    path = cache.set("k1", {"a": 1})

    raw = path.read_text(encoding="utf-8")
    assert "\n  " in raw
    assert json.loads(raw) == {"createdAtMs": fake_clock.now_ms, "value": {"a": 1}}


def test_set_leaves_no_temporary_files(cache):
    cache.set("k1", {"a": 1})
    cache.set("k1", {"a": 2})

    assert sorted(os.listdir(cache.cache_dir)) == ["k1.json"]
    assert cache.get("k1") == {"a": 2}


def test_get_returns_fresh_value(cache, fake_clock):
    cache.set("k1", {"a": 1})
    fake_clock.advance(TTL_MS)

    assert cache.get("k1") == {"a": 1}


def test_expired_entry_is_a_miss_and_is_deleted(cache, fake_clock):
    cache.set("k1", {"a": 1})
    fake_clock.advance(TTL_MS + 1)

    assert cache.get("k1") is None
    assert not cache.path_for_key("k1").exists()


@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        "",
        "[]",
        json.dumps({"value": {"a": 1}}),
        json.dumps({"createdAtMs": "1700000000000", "value": {"a": 1}}),
        json.dumps({"createdAtMs": True, "value": {"a": 1}}),
        json.dumps({"createdAtMs": 1_700_000_000_000, "value": None}),
        json.dumps({"createdAtMs": float("nan"), "value": {"a": 1}}),
        json.dumps({"createdAtMs": float("inf"), "value": {"a": 1}}),
        json.dumps({"createdAtMs": float("-inf"), "value": {"a": 1}}),
    ],
)
def test_corrupt_entries_are_misses_and_deleted(cache, payload):
    write_entry(cache, "bad", payload)

    assert cache.get("bad") is None
    assert not cache.path_for_key("bad").exists()


@pytest.mark.parametrize("timestamp", ["NaN", "Infinity"])
def test_non_finite_timestamps_never_count_as_fresh(cache, fake_clock, timestamp):
    write_entry(cache, "k1", '{"createdAtMs": ' + timestamp + ', "value": {"a": 1}}')
    fake_clock.advance(10**12)

    assert cache.get("k1") is None
    assert not cache.path_for_key("k1").exists()


def test_validator_rejection_deletes_entry(cache):
    cache.set("k1", {"a": 1})

    assert cache.get("k1", validator=lambda value: "b" in value) is None
    assert not cache.path_for_key("k1").exists()


def test_float_timestamps_are_accepted(cache, fake_clock):
    write_entry(cache, "k1", json.dumps({"createdAtMs": float(fake_clock.now_ms), "value": {"a": 1}}))

    assert cache.get("k1") == {"a": 1}


def test_invalidate_missing_entry_is_silent(cache):
    cache.invalidate("never-written")

    cache.set("k1", {"a": 1})
    cache.invalidate("k1")
    cache.invalidate("k1")
    assert not cache.path_for_key("k1").exists()


def test_write_failure_propagates_and_cleans_up(cache, monkeypatch):
    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("sprite_lab.cache.os.replace", broken_replace)

    with pytest.raises(OSError, match="disk full"):
        cache.set("k1", {"a": 1})

    assert os.listdir(cache.cache_dir) == []


def test_write_into_unusable_directory_raises(tmp_path, fake_clock):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    cache = DescriptionCache(blocker / "entries", TTL_MS, clock=fake_clock)

    with pytest.raises(OSError):
        cache.set("k1", {"a": 1})


def test_clear_removes_directory(cache):
    assert cache.clear() is False

    cache.set("k1", {"a": 1})
    assert cache.clear() is True
    assert not cache.cache_dir.exists()
