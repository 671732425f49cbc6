"""Tests for the filesystem blob backend."""

from __future__ import annotations

from io import BytesIO

import pytest

from filemanager.core.storage.backends import FilesystemBackend
from filemanager.core.storage.blob import BlobNotFoundError, BlobStorageError


class TestFilesystemContainer:
    """Test container lifecycle."""

    def test_create_container(self, tmp_path):
        backend = FilesystemBackend(base_path=tmp_path, container="tenant")

        assert not backend.container_exists()
        assert backend.create_container() is True
        assert backend.container_exists()
        assert (tmp_path / "tenant").is_dir()

        # Second call is a no-op
        assert backend.create_container() is False

    def test_delete_container(self, tmp_path):
        backend = FilesystemBackend(base_path=tmp_path, container="tenant")
        backend.put("a/b.txt", b"data")

        assert backend.delete_container() is True
        assert not (tmp_path / "tenant").exists()
        assert backend.delete_container() is False

    def test_reads_before_container_exists(self, tmp_path):
        backend = FilesystemBackend(base_path=tmp_path, container="tenant")

        assert backend.exists("a.txt") is False
        assert backend.list_blobs().blobs == []
        with pytest.raises(BlobNotFoundError):
            backend.get_metadata("a.txt")


class TestFilesystemBackend:
    """Test suite for blob operations."""

    @pytest.fixture
    def backend(self, tmp_path):
        backend = FilesystemBackend(base_path=tmp_path, container="test")
        backend.create_container()
        return backend

    def test_put_and_get_bytes(self, backend):
        data = b"Hello, blob storage!"
        etag = backend.put("test.txt", data)

        assert etag is not None
        assert backend.get("test.txt") == data

    def test_put_from_stream(self, backend):
        backend.put("from_stream.txt", BytesIO(b"Stream input data"))

        assert backend.get("from_stream.txt") == b"Stream input data"
        assert backend.get_size("from_stream.txt") == len(b"Stream input data")

    def test_get_stream(self, backend):
        backend.put("stream.txt", b"Stream data content")

        with backend.get_stream("stream.txt") as stream:
            assert stream.read() == b"Stream data content"

    def test_get_metadata(self, backend):
        data = b"test data for metadata"
        backend.put("test.txt", data, content_type="text/plain", metadata={"filename": "t"})

        blob_meta = backend.get_metadata("test.txt")

        assert blob_meta.key == "test.txt"
        assert blob_meta.size == len(data)
        assert blob_meta.content_type == "text/plain"
        assert blob_meta.custom_metadata == {"filename": "t"}
        assert blob_meta.last_modified is not None

    def test_get_metadata_without_sidecar(self, backend, tmp_path):
        blobs_dir = tmp_path / "test" / "blobs"
        blobs_dir.mkdir(parents=True)
        (blobs_dir / "raw.bin").write_bytes(b"raw")

        blob_meta = backend.get_metadata("raw.bin")

        assert blob_meta.size == 3
        assert blob_meta.content_type == "application/octet-stream"
        assert blob_meta.custom_metadata == {}

    def test_get_nonexistent_blob(self, backend):
        with pytest.raises(BlobNotFoundError):
            backend.get("nonexistent.txt")

    def test_delete(self, backend):
        backend.put("to_delete.txt", b"delete me")
        backend.delete("to_delete.txt")

        assert not backend.exists("to_delete.txt")

    def test_delete_nonexistent(self, backend):
        with pytest.raises(BlobNotFoundError):
            backend.delete("nonexistent.txt")

    def test_delete_cleans_up_empty_directories(self, backend, tmp_path):
        backend.put("a/b/c.txt", b"data")
        backend.delete("a/b/c.txt")

        assert not (tmp_path / "test" / "blobs" / "a").exists()
        assert not (tmp_path / "test" / "meta" / "a").exists()
        assert (tmp_path / "test").is_dir()

    def test_delete_many(self, backend):
        for i in range(5):
            backend.put(f"file{i}.txt", f"content {i}".encode())

        results = backend.delete_many(["file0.txt", "file2.txt", "nonexistent.txt"])

        assert results == {"file0.txt": True, "file2.txt": True, "nonexistent.txt": False}
        assert not backend.exists("file0.txt")
        assert backend.exists("file1.txt")

    def test_folder_placeholder_keys(self, backend):
        backend.put("docs/", b"", metadata={"filename": "docs"})

        assert backend.exists("docs/")
        assert backend.get("docs/") == b""
        assert backend.get_metadata("docs/").custom_metadata == {"filename": "docs"}
        assert [blob.key for blob in backend.list_blobs().blobs] == ["docs/"]

        backend.delete("docs/")
        assert not backend.exists("docs/")
        assert backend.list_blobs().blobs == []

    def test_placeholder_and_dot_folder_file_coexist(self, backend):
        backend.put("docs/", b"")
        backend.put("docs/.folder", b"user data")

        listed = backend.list_blobs(prefix="docs/")

        assert [blob.key for blob in listed.blobs] == ["docs/", "docs/.folder"]
        assert backend.get("docs/.folder") == b"user data"

        backend.delete("docs/")
        assert backend.exists("docs/.folder")

    def test_meta_suffixed_keys_are_ordinary_blobs(self, backend):
        backend.put("docs/notes.meta", b"my notes", content_type="text/plain")
        backend.put("docs/notes", b"other")

        keys = [blob.key for blob in backend.list_blobs(prefix="docs/").blobs]

        assert keys == ["docs/notes", "docs/notes.meta"]
        assert backend.get_metadata("docs/notes.meta").content_type == "text/plain"

        backend.delete("docs/notes.meta")
        assert not backend.exists("docs/notes.meta")
        assert backend.get("docs/notes") == b"other"

    def test_copy_folder_placeholder(self, backend):
        backend.put("src/", b"", metadata={"filename": "src"})

        backend.copy("src/", "dest/src/")

        assert backend.exists("dest/src/")
        assert backend.get_metadata("dest/src/").custom_metadata == {"filename": "src"}

    @pytest.mark.parametrize("key", ["../x.txt", "a/../../b.txt", "./a.txt", "a//b.txt", "../"])
    def test_rejects_keys_escaping_container(self, backend, tmp_path, key):
        with pytest.raises(BlobStorageError, match="Invalid blob key"):
            backend.put(key, b"data")
        with pytest.raises(BlobStorageError, match="Invalid blob key"):
            backend.exists(key)

        assert not (tmp_path / "x.txt").exists()
        assert not (tmp_path / "test" / "x.txt").exists()

    def test_list_blobs(self, backend):
        backend.put("file1.txt", b"data1")
        backend.put("file2.txt", b"data2")
        backend.put("docs/file3.txt", b"data3")

        result = backend.list_blobs()

        assert [blob.key for blob in result.blobs] == ["docs/file3.txt", "file1.txt", "file2.txt"]
        assert result.is_truncated is False

    def test_list_with_prefix(self, backend):
        backend.put("docs/readme.txt", b"readme")
        backend.put("docs/guide.txt", b"guide")
        backend.put("docsearch.txt", b"not in docs/")
        backend.put("images/photo.jpg", b"photo")

        keys = {blob.key for blob in backend.list_blobs(prefix="docs/").blobs}

        assert keys == {"docs/readme.txt", "docs/guide.txt"}

    def test_list_with_delimiter(self, backend):
        backend.put("docs/readme.txt", b"readme")
        backend.put("docs/api/index.txt", b"index")
        backend.put("docs/empty/", b"")
        backend.put("root.txt", b"root")

        top = backend.list_blobs(delimiter="/")
        assert [blob.key for blob in top.blobs] == ["root.txt"]
        assert top.prefixes == ["docs/"]

        docs = backend.list_blobs(prefix="docs/", delimiter="/")
        assert [blob.key for blob in docs.blobs] == ["docs/readme.txt"]
        assert docs.prefixes == ["docs/api/", "docs/empty/"]

    def test_list_with_metadata(self, backend):
        backend.put("a.txt", b"a", content_type="text/plain", metadata={"filename": "A"})

        (blob,) = backend.list_blobs(include_metadata=True).blobs

        assert blob.content_type == "text/plain"
        assert blob.custom_metadata == {"filename": "A"}

    def test_list_pagination(self, backend):
        for i in range(5):
            backend.put(f"file{i}.txt", b"x")

        first = backend.list_blobs(max_results=2)
        assert [blob.key for blob in first.blobs] == ["file0.txt", "file1.txt"]
        assert first.is_truncated is True

        second = backend.list_blobs(max_results=2, marker=first.next_marker)
        assert [blob.key for blob in second.blobs] == ["file2.txt", "file3.txt"]

        last = backend.list_blobs(max_results=2, marker=second.next_marker)
        assert [blob.key for blob in last.blobs] == ["file4.txt"]
        assert last.is_truncated is False

    def test_copy(self, backend):
        backend.put("source.txt", b"original", content_type="text/plain", metadata={"k": "v"})

        backend.copy("source.txt", "nested/destination.txt")

        assert backend.exists("source.txt")
        assert backend.get("nested/destination.txt") == b"original"
        copied = backend.get_metadata("nested/destination.txt")
        assert copied.content_type == "text/plain"
        assert copied.custom_metadata == {"k": "v"}

    def test_copy_replacing_metadata(self, backend):
        backend.put("source.txt", b"original", content_type="text/plain", metadata={"k": "v"})

        backend.copy("source.txt", "dest.txt", metadata={"filename": "new"})

        assert backend.get_metadata("dest.txt").custom_metadata == {"filename": "new"}
        assert backend.get_metadata("source.txt").custom_metadata == {"k": "v"}

    def test_copy_nonexistent(self, backend):
        with pytest.raises(BlobNotFoundError):
            backend.copy("missing.txt", "dest.txt")

    def test_generate_presigned_url(self, backend):
        backend.put("a.txt", b"a")

        assert backend.generate_presigned_url("a.txt").startswith("file://")

    def test_blob_with_special_characters(self, backend):
        for key in ["file with spaces.txt", "file.multiple.dots.txt", "ünïcode.txt"]:
            backend.put(key, b"data")
            assert backend.exists(key)
            assert backend.get(key) == b"data"

    def test_empty_blob(self, backend):
        backend.put("empty.txt", b"")

        assert backend.get("empty.txt") == b""
        assert backend.get_size("empty.txt") == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
