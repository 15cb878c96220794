"""Tests for the persistent model store."""

from datetime import datetime

from fatigue_forecaster.db import Database, ModelStore, StoredModel


def make_record(user_id="athlete", version="1.0.0", is_trained=True, weights=b"\x00\x01payload"):
    return StoredModel(
        user_id=user_id,
        model_key=f"fatigue-model-{user_id}-v{version}",
        version=version,
        architecture='{"class_name": "Sequential"}',
        weights=weights,
        is_trained=is_trained,
        samples_trained=12,
        last_full_training=datetime(2025, 3, 1, 8, 0),
    )


class TestModelStore:
    """Test model persistence."""

    def _store(self, tmp_path):
        return ModelStore(Database(f"sqlite:///{tmp_path / 'models.db'}"))

    def test_round_trip(self, tmp_path):
        store = self._store(tmp_path)
        store.save(make_record())

        loaded = store.load("athlete")
        assert loaded == make_record()

    def test_missing_user(self, tmp_path):
        assert self._store(tmp_path).load("nobody") is None

    def test_save_replaces_existing(self, tmp_path):
        store = self._store(tmp_path)
        store.save(make_record(weights=b"old"))
        store.save(make_record(weights=b"new", is_trained=False))

        loaded = store.load("athlete")
        assert loaded.weights == b"new"
        assert not loaded.is_trained

    def test_users_are_isolated(self, tmp_path):
        store = self._store(tmp_path)
        store.save(make_record("a", weights=b"a"))
        store.save(make_record("b", weights=b"b"))

        assert store.load("a").weights == b"a"
        assert store.delete("a")
        assert store.load("a") is None
        assert store.load("b").weights == b"b"

    def test_delete_missing(self, tmp_path):
        assert not self._store(tmp_path).delete("nobody")

    def test_exists_filters(self, tmp_path):
        store = self._store(tmp_path)
        store.save(make_record(is_trained=False))

        assert store.exists("athlete")
        assert store.exists("athlete", version="1.0.0")
        assert not store.exists("athlete", version="2.0.0")
        assert not store.exists("athlete", trained_only=True)

    def test_persists_across_connections(self, tmp_path):
        self._store(tmp_path).save(make_record())
        assert self._store(tmp_path).exists("athlete", trained_only=True)


class TestDatabase:
    """Test storage durability detection."""

    def test_in_memory_is_not_durable(self):
        assert not Database("sqlite://").is_durable()
        assert not Database("sqlite:///:memory:").is_durable()

    def test_file_is_durable(self, tmp_path):
        db = Database(f"sqlite:///{tmp_path / 'nested' / 'dir' / 'models.db'}")
        assert db.is_durable()
        assert (tmp_path / "nested" / "dir").is_dir()
