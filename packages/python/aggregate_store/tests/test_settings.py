import pytest

from aggregate_store import StoreSettings


def test_defaults(monkeypatch):
    for name in (
        "AGGREGATE_STORE_URI",
        "AGGREGATE_STORE_DB",
        "AGGREGATE_STORE_COLLECTION",
        "AGGREGATE_STORE_TIMEOUT_MS",
        "AGGREGATE_STORE_CLOSE_TIMEOUT",
        "AGGREGATE_STORE_TTL_INDEX",
    ):
        monkeypatch.delenv(name, raising=False)

    cfg = StoreSettings()

    assert cfg.uri == "mongodb://localhost:27017"
    assert cfg.db_name == "aggregates"
    assert cfg.collection == "aggregates"
    assert cfg.timeout_ms == 10000
    assert cfg.close_timeout_seconds == 10.0
    assert cfg.create_ttl_index is True


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("AGGREGATE_STORE_URI", "mongodb://db:27017")
    monkeypatch.setenv("AGGREGATE_STORE_COLLECTION", "users")
    monkeypatch.setenv("AGGREGATE_STORE_TIMEOUT_MS", "2500")
    monkeypatch.setenv("AGGREGATE_STORE_CLOSE_TIMEOUT", "2.5")

    cfg = StoreSettings()

    assert cfg.uri == "mongodb://db:27017"
    assert cfg.collection == "users"
    assert cfg.timeout_ms == 2500
    assert cfg.close_timeout_seconds == 2.5


@pytest.mark.parametrize(
    "raw, expected",
    [("true", True), ("1", True), ("YES", True), ("false", False), ("0", False), ("off", False)],
)
def test_ttl_index_flag(monkeypatch, raw, expected):
    monkeypatch.setenv("AGGREGATE_STORE_TTL_INDEX", raw)
    assert StoreSettings().create_ttl_index is expected


def test_explicit_values_win_over_environment(monkeypatch):
    monkeypatch.setenv("AGGREGATE_STORE_DB", "from-env")
    assert StoreSettings(db_name="explicit").db_name == "explicit"
