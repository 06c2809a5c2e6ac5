"""
Unit tests for rename candidate generation.
"""

import pytest

from assetstore.assets.keys import original_filename
from assetstore.assets.naming import VersionedNameGenerator, versioned_name_generator


class TestVersionedNameGenerator:
    """Test versioned rename candidates."""

    def test_candidates_in_order(self):
        generator = VersionedNameGenerator("dir/abcdef1234/photo.jpg", max_tries=3)

        assert list(generator) == [
            "dir/abcdef1234/photo-v2.jpg",
            "dir/abcdef1234/photo-v3.jpg",
            "dir/abcdef1234/photo-v4.jpg",
        ]

    def test_existing_version_is_replaced(self):
        generator = VersionedNameGenerator("a/photo-v3.jpg", max_tries=3)

        assert list(generator) == ["a/photo-v2.jpg", "a/photo-v4.jpg", "a/photo-v5.jpg"]

    def test_never_yields_input_key(self):
        key = "abcdef1234/doc-v2.pdf"
        assert key not in list(VersionedNameGenerator(key, max_tries=10))

    def test_key_at_root_without_extension(self):
        assert next(iter(VersionedNameGenerator("photo"))) == "photo-v2"

    def test_multi_dot_extension(self):
        assert next(iter(VersionedNameGenerator("h/a.tar.gz"))) == "h/a-v2.tar.gz"

    def test_restartable(self):
        generator = VersionedNameGenerator("x/file.txt", max_tries=4)
        assert list(generator) == list(generator)

    def test_bounded_by_max_tries(self):
        assert len(list(VersionedNameGenerator("x/file.txt", max_tries=7))) == 7

    def test_invalid_max_tries(self):
        with pytest.raises(ValueError):
            VersionedNameGenerator("x/file.txt", max_tries=0)

    def test_candidates_map_back_to_renamed_filename(self):
        candidate = next(iter(VersionedNameGenerator("dir/abcdef1234/photo.jpg")))
        assert original_filename(candidate) == "dir/photo-v2.jpg"


class TestFactory:
    """Test the generator factory."""

    def test_factory_applies_attempt_limit(self):
        factory = versioned_name_generator(2)
        assert len(list(factory("a/b.txt"))) == 2
