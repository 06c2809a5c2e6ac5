"""
Unit tests for filesystem storage backend.
"""

import io
from pathlib import Path

import pytest

from assetstore.storage.filesystem import FilesystemStorage
from assetstore.storage.adapter import NotFoundError, StorageError, Visibility


@pytest.fixture
def temp_storage(tmp_path):
    """Create a temporary storage instance."""
    return FilesystemStorage(str(tmp_path), public_url_base="/assets/", protected_url_base="/protected")


@pytest.fixture
def sample_file():
    """Create a sample file-like object."""
    content = b"This is test content for storage"
    return io.BytesIO(content)


class TestFilesystemStorageInit:
    """Test storage initialization."""

    def test_init_creates_directory_structure(self, tmp_path):
        """Test that init creates the public and protected trees."""
        storage = FilesystemStorage(str(tmp_path))

        assert (storage.base_path / "public").exists()
        assert (storage.base_path / "protected").exists()

    def test_init_with_existing_structure(self, tmp_path):
        """Test that init works with existing directory structure."""
        (tmp_path / "public").mkdir(parents=True)

        storage = FilesystemStorage(str(tmp_path))
        assert storage.base_path == tmp_path

    def test_relative_path_resolution(self, tmp_path, monkeypatch):
        """Test that relative paths are properly resolved."""
        monkeypatch.chdir(tmp_path)
        storage = FilesystemStorage("./test_storage")

        assert storage.base_path.is_absolute()


class TestWrite:
    """Test file storage."""

    def test_write_stream_public(self, temp_storage, sample_file):
        """Test storing a stream as a public file."""
        assert temp_storage.write_stream("docs/abc/test.txt", sample_file, Visibility.PUBLIC)

        assert (temp_storage.base_path / "public" / "docs" / "abc" / "test.txt").exists()
        assert temp_storage.exists("docs/abc/test.txt")

    def test_write_protected(self, temp_storage):
        """Test storing a buffer as a protected file."""
        temp_storage.write("secret.txt", b"hidden", Visibility.PROTECTED)

        assert (temp_storage.base_path / "protected" / "secret.txt").exists()
        assert temp_storage.get_visibility("secret.txt") is Visibility.PROTECTED

    def test_write_overwrites_existing(self, temp_storage):
        """Test that storing to same key overwrites."""
        temp_storage.write("test.txt", b"First content", Visibility.PUBLIC)
        temp_storage.write("test.txt", b"Second content - different", Visibility.PUBLIC)

        assert temp_storage.read("test.txt") == b"Second content - different"

    def test_write_with_other_visibility_moves_file(self, temp_storage):
        """Test that a key never lives in both trees."""
        temp_storage.write("a/test.txt", b"one", Visibility.PUBLIC)
        temp_storage.write("a/test.txt", b"two", Visibility.PROTECTED)

        assert not (temp_storage.base_path / "public" / "a").exists()
        assert temp_storage.get_visibility("a/test.txt") is Visibility.PROTECTED
        assert temp_storage.read("a/test.txt") == b"two"

    def test_write_with_special_characters(self, temp_storage, sample_file):
        """Test storing files with special characters in name."""
        temp_storage.write_stream("test file (1).txt", sample_file, Visibility.PUBLIC)

        sample_file.seek(0)
        assert temp_storage.read("test file (1).txt") == sample_file.read()

    def test_unicode_key(self, temp_storage):
        """Test storing files with unicode names."""
        temp_storage.write("тест_文件.txt", b"data", Visibility.PUBLIC)
        assert temp_storage.read("тест_文件.txt") == b"data"

    @pytest.mark.parametrize("key", ["../escape.txt", "/etc/passwd", "a/../../b.txt"])
    def test_rejects_escaping_keys(self, temp_storage, key):
        """Test that keys cannot leave the storage root."""
        with pytest.raises(StorageError, match="Invalid key"):
            temp_storage.write(key, b"x", Visibility.PUBLIC)


class TestRead:
    """Test file retrieval."""

    def test_read_stream(self, temp_storage):
        """Test streaming an existing file."""
        temp_storage.write("test.bin", b"\x00\x01\x02", Visibility.PUBLIC)

        with temp_storage.read_stream("test.bin") as stream:
            assert stream.read() == b"\x00\x01\x02"

    def test_read_nonexistent_file(self, temp_storage):
        """Test reading a file that doesn't exist."""
        with pytest.raises(NotFoundError, match="not found"):
            temp_storage.read("fake/path/nonexistent.txt")

        with pytest.raises(NotFoundError):
            temp_storage.read_stream("fake/path/nonexistent.txt")


class TestExists:
    """Test file existence checks."""

    def test_exists_true_for_stored_file(self, temp_storage):
        temp_storage.write("test.txt", b"x", Visibility.PROTECTED)
        assert temp_storage.exists("test.txt") is True

    def test_exists_false_for_nonexistent_file(self, temp_storage):
        assert temp_storage.exists("fake/path/nonexistent.txt") is False

    def test_exists_false_for_directory(self, temp_storage):
        temp_storage.write("dir/test.txt", b"x", Visibility.PUBLIC)
        assert temp_storage.exists("dir") is False


class TestDelete:
    """Test file deletion."""

    def test_delete_existing_file(self, temp_storage):
        temp_storage.write("test.txt", b"x", Visibility.PUBLIC)

        assert temp_storage.delete("test.txt") is True
        assert not temp_storage.exists("test.txt")

    def test_delete_removes_empty_directories(self, temp_storage):
        """Test that delete removes empty parent directories."""
        temp_storage.write("req/part/only-file.txt", b"x", Visibility.PUBLIC)
        part_dir = temp_storage.base_path / "public" / "req" / "part"
        assert part_dir.exists()

        temp_storage.delete("req/part/only-file.txt")

        assert not part_dir.exists()
        assert not (temp_storage.base_path / "public" / "req").exists()
        assert (temp_storage.base_path / "public").exists()

    def test_delete_keeps_non_empty_directories(self, temp_storage):
        temp_storage.write("req/a.txt", b"x", Visibility.PUBLIC)
        temp_storage.write("req/b.txt", b"x", Visibility.PUBLIC)

        temp_storage.delete("req/a.txt")

        assert temp_storage.exists("req/b.txt")

    def test_delete_nonexistent_file_raises_error(self, temp_storage):
        with pytest.raises(NotFoundError, match="not found"):
            temp_storage.delete("fake/path/nonexistent.txt")


class TestListContents:
    """Test directory listing."""

    def test_list_files_in_directory(self, temp_storage):
        for name in ["file1.txt", "file2.txt", "file3.txt"]:
            temp_storage.write(f"req/{name}", b"x", Visibility.PUBLIC)

        entries = list(temp_storage.list_contents("req"))

        assert [e.path for e in entries] == ["req/file1.txt", "req/file2.txt", "req/file3.txt"]
        assert all(e.is_file for e in entries)

    def test_list_merges_both_trees(self, temp_storage):
        temp_storage.write("req/public.txt", b"x", Visibility.PUBLIC)
        temp_storage.write("req/private.txt", b"x", Visibility.PROTECTED)

        paths = {e.path for e in temp_storage.list_contents("req")}

        assert paths == {"req/public.txt", "req/private.txt"}

    def test_list_is_not_recursive(self, temp_storage):
        temp_storage.write("req/top.txt", b"x", Visibility.PUBLIC)
        temp_storage.write("req/sub/nested.txt", b"x", Visibility.PUBLIC)
        temp_storage.write("req/sub/other.txt", b"x", Visibility.PROTECTED)

        entries = list(temp_storage.list_contents("req"))

        assert sorted((e.path, e.type) for e in entries) == [
            ("req/sub", "dir"),
            ("req/top.txt", "file"),
        ]

    def test_list_root(self, temp_storage):
        temp_storage.write("top.txt", b"x", Visibility.PUBLIC)
        assert [e.path for e in temp_storage.list_contents("")] == ["top.txt"]

    def test_list_empty_directory(self, temp_storage):
        assert list(temp_storage.list_contents("empty/dir")) == []


class TestVisibility:
    """Test visibility changes."""

    def test_get_visibility_absent(self, temp_storage):
        assert temp_storage.get_visibility("missing.txt") is None

    def test_set_visibility_moves_file(self, temp_storage):
        temp_storage.write("dir/file.txt", b"content", Visibility.PUBLIC)

        temp_storage.set_visibility("dir/file.txt", Visibility.PROTECTED)

        assert temp_storage.get_visibility("dir/file.txt") is Visibility.PROTECTED
        assert (temp_storage.base_path / "protected" / "dir" / "file.txt").exists()
        assert not (temp_storage.base_path / "public" / "dir").exists()
        assert temp_storage.read("dir/file.txt") == b"content"

    def test_set_same_visibility_is_noop(self, temp_storage):
        temp_storage.write("file.txt", b"content", Visibility.PUBLIC)
        temp_storage.set_visibility("file.txt", Visibility.PUBLIC)
        assert temp_storage.get_visibility("file.txt") is Visibility.PUBLIC

    def test_set_visibility_missing(self, temp_storage):
        with pytest.raises(NotFoundError):
            temp_storage.set_visibility("missing.txt", Visibility.PUBLIC)


class TestMetadata:
    """Test metadata retrieval."""

    def test_get_metadata(self, temp_storage):
        content = b"Test content with known size"
        temp_storage.write("img/photo.png", content, Visibility.PROTECTED)

        metadata = temp_storage.get_metadata("img/photo.png")

        assert metadata.path == "img/photo.png"
        assert metadata.size == len(content)
        assert metadata.mime_type == "image/png"
        assert metadata.visibility is Visibility.PROTECTED
        assert metadata.last_modified is not None

    def test_get_metadata_zero_byte_file(self, temp_storage):
        temp_storage.write("empty.txt", b"", Visibility.PUBLIC)
        assert temp_storage.get_metadata("empty.txt").size == 0

    def test_get_metadata_missing(self, temp_storage):
        with pytest.raises(NotFoundError):
            temp_storage.get_metadata("missing.txt")

    def test_get_mime_type(self, temp_storage):
        temp_storage.write("doc.pdf", b"%PDF", Visibility.PUBLIC)
        temp_storage.write("blob.unknownext", b"x", Visibility.PUBLIC)

        assert temp_storage.get_mime_type("doc.pdf") == "application/pdf"
        assert temp_storage.get_mime_type("blob.unknownext") == "application/octet-stream"

    def test_get_mime_type_missing(self, temp_storage):
        with pytest.raises(NotFoundError):
            temp_storage.get_mime_type("missing.pdf")


class TestUrls:
    """Test URL generation."""

    def test_public_url(self, temp_storage):
        assert temp_storage.get_public_url("dir/abcdef1234/My File.jpg") == \
            "/assets/dir/abcdef1234/My%20File.jpg"

    def test_protected_url(self, temp_storage):
        assert temp_storage.get_protected_url("dir/file.jpg") == "/protected/dir/file.jpg"


class TestEdgeCases:
    """Test edge cases and error handling."""

    def test_large_file_storage(self, temp_storage):
        """Test storing a larger file."""
        large_content = b"x" * (1024 * 1024)

        temp_storage.write_stream("large.bin", io.BytesIO(large_content), Visibility.PUBLIC)

        assert temp_storage.get_metadata("large.bin").size == len(large_content)
        assert temp_storage.read("large.bin") == large_content
