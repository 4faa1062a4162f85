"""
Tests for LocalCache.
"""

import json

from school_signage.common.local_cache import LocalCache


class TestBundle:
    """Tests for the cached settings bundle."""

    def test_empty_when_nothing_cached(self, cache):
        assert cache.load_bundle() == {}

    def test_save_and_load(self, cache):
        bundle = {'generalConfig': {'schoolName': 'Lincoln HS'}, 'customSlides': []}
        cache.save_bundle(bundle)
        assert cache.load_bundle() == bundle

    def test_survives_new_instance(self, cache):
        """Test the bundle is durable across restarts."""
        cache.save_bundle({'USE_IMAGE_SLIDES': True})
        reopened = LocalCache(str(cache.cache_dir))
        assert reopened.load_bundle() == {'USE_IMAGE_SLIDES': True}

    def test_none_values_dropped(self, cache):
        cache.save_bundle({'customTheme': None, 'generalConfig': {'schoolName': 'A'}})
        assert cache.load_bundle() == {'generalConfig': {'schoolName': 'A'}}

    def test_corrupt_file_treated_as_empty(self, cache):
        """Test a half-written or corrupt cache does not break startup."""
        cache.cache_dir.mkdir(parents=True)
        (cache.cache_dir / LocalCache.SETTINGS_FILE).write_text("{not json")
        assert cache.load_bundle() == {}

    def test_non_object_file_treated_as_empty(self, cache):
        cache.cache_dir.mkdir(parents=True)
        (cache.cache_dir / LocalCache.SETTINGS_FILE).write_text(json.dumps([1, 2, 3]))
        assert cache.load_bundle() == {}

    def test_no_temp_files_left_behind(self, cache):
        cache.save_bundle({'a': 1})
        cache.save_bundle({'a': 2})
        assert sorted(p.name for p in cache.cache_dir.iterdir()) == [LocalCache.SETTINGS_FILE]


class TestKeys:
    """Tests for single-key access."""

    def test_set_and_get(self, cache):
        cache.set('customTheme', {'accentColor': '#ff0000'})
        assert cache.get('customTheme') == {'accentColor': '#ff0000'}

    def test_set_none_removes(self, cache):
        cache.set('customTheme', {'name': 'x'})
        cache.set('customTheme', None)
        assert cache.get('customTheme', 'default') == 'default'

    def test_remove(self, cache):
        cache.set('a', 1)
        cache.set('b', 2)
        cache.remove('a')
        assert cache.load_bundle() == {'b': 2}


class TestSession:
    """Tests for the admin session token."""

    def test_no_token_by_default(self, cache):
        assert cache.session_token is None

    def test_token_persisted(self, cache):
        cache.session_token = 'abc123'
        assert LocalCache(str(cache.cache_dir)).session_token == 'abc123'

    def test_clearing_token(self, cache):
        cache.session_token = 'abc123'
        cache.session_token = None
        assert cache.session_token is None

    def test_clear_removes_everything(self, cache):
        cache.session_token = 'abc123'
        cache.save_bundle({'a': 1})
        cache.clear()
        assert cache.session_token is None
        assert cache.load_bundle() == {}
