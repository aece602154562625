"""Tests for promptreg.core.cache module."""

from pathlib import Path

from promptreg.core.cache import BundleCache


class TestBundleCache:
    """Tests for BundleCache."""

    def test_store_and_load(self, user_home: Path, make_bundle):
        """Stored bundles can be found and their manifest read."""
        cache = BundleCache(user_home / "bundles")
        bundle_dir = make_bundle("my-bundle", "1.2.0")

        cached = cache.store("my-bundle", bundle_dir)

        assert cached == user_home / "bundles" / "my-bundle"
        assert cache.get("my-bundle") == cached
        assert cache.load_manifest("my-bundle").version == "1.2.0"

    def test_store_replaces_previous_version(self, user_home: Path, make_bundle):
        """Storing again replaces the cached copy."""
        cache = BundleCache(user_home / "bundles")
        cache.store("b", make_bundle("b", "1.0.0", directory="b-1"))

        cache.store("b", make_bundle("b", "2.0.0", directory="b-2"))

        assert cache.load_manifest("b").version == "2.0.0"

    def test_not_cached(self, user_home: Path):
        """Unknown bundles are None."""
        cache = BundleCache(user_home / "bundles")

        assert cache.get("nope") is None
        assert cache.load_manifest("nope") is None

    def test_unreadable_manifest(self, user_home: Path):
        """A broken cached manifest is ignored."""
        cache = BundleCache(user_home / "bundles")
        broken = cache.path_for("b")
        broken.mkdir(parents=True)
        (broken / "deployment-manifest.yml").write_text("id: [")

        assert cache.load_manifest("b") is None

    def test_unsafe_ids(self, user_home: Path):
        """Bundle ids are normalized into safe directory names."""
        cache = BundleCache(user_home / "bundles")

        assert cache.path_for("../evil").name == "---evil"

    def test_remove(self, user_home: Path, make_bundle):
        """Removes the cached copy."""
        cache = BundleCache(user_home / "bundles")
        cache.store("b", make_bundle("b"))

        assert cache.remove("b") is True
        assert cache.get("b") is None
