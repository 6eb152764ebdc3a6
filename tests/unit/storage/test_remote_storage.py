"""Tests for the object-store backed cache storage."""

import io
import logging
import os
import tarfile
import time
from pathlib import Path

import pytest

from build_cache_storage.archive import ARCHIVE_CONTENT_TYPE
from build_cache_storage.exceptions import HangTimeoutError
from build_cache_storage.object_store.base import ObjectDescriptor, StorageObject
from build_cache_storage.object_store.exceptions import StoragePermissionError
from build_cache_storage.storage.remote import RemoteCacheStorage


def _tar_of(files: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


class TestRoundTrip:
    def test_put_then_fetch_restores_files(self, store, workdir, tmp_path, write_files, snapshot):
        files = {"dist/out.js": b"console.log(1);", "dist/out.js.map": b"{}"}
        write_files(workdir, files)
        RemoteCacheStorage(store, workdir).put("abc123", list(files))

        fresh = tmp_path / "fresh"
        hit = RemoteCacheStorage(store, fresh).fetch("abc123")

        assert hit is True
        assert snapshot(fresh) == files

    def test_fetch_overwrites_existing_files(self, store, workdir, write_files, snapshot):
        store.objects["abc"] = _tar_of({"dist/out.js": b"cached"})
        write_files(workdir, {"dist/out.js": b"stale", "other.txt": b"untouched"})

        assert RemoteCacheStorage(store, workdir).fetch("abc")

        assert snapshot(workdir) == {"dist/out.js": b"cached", "other.txt": b"untouched"}

    def test_upload_uses_tar_content_type(self, store, workdir, write_files):
        write_files(workdir, {"a.txt": b"a"})

        RemoteCacheStorage(store, workdir).put("abc", ["a.txt"])

        assert store.content_types["abc"] == ARCHIVE_CONTENT_TYPE
        with tarfile.open(fileobj=io.BytesIO(store.objects["abc"])) as tar:
            assert tar.getnames() == ["a.txt"]

    def test_prefix_applies_to_both_directions(self, store, workdir, tmp_path, write_files):
        write_files(workdir, {"a.txt": b"a"})
        RemoteCacheStorage(store, workdir, prefix="ci/").put("abc", ["a.txt"])

        assert store.put_calls == ["ci/abc"]
        assert RemoteCacheStorage(store, tmp_path / "fresh", prefix="ci/").fetch("abc")
        assert store.get_calls == ["ci/abc"]


class TestFetch:
    def test_miss_returns_false_and_leaves_cwd_alone(self, store, workdir, write_files, snapshot):
        write_files(workdir, {"keep.txt": b"keep"})

        assert RemoteCacheStorage(store, workdir).fetch("missing") is False
        assert snapshot(workdir) == {"keep.txt": b"keep"}

    def test_oversize_object_is_skipped(self, store, workdir, caplog):
        store.objects["big"] = _tar_of({"big.bin": b"x" * 100})

        with caplog.at_level(logging.DEBUG, logger="build_cache_storage.storage.remote"):
            hit = RemoteCacheStorage(store, workdir, max_size=10).fetch("big")

        assert hit is False
        assert list(workdir.iterdir()) == []
        assert store.closed_keys == ["big"]
        assert "too large to be downloaded" in caplog.text

    def test_declared_length_decides_before_download(self, store, workdir):
        store.objects["abc"] = _tar_of({"a.txt": b"a"})
        store.declared_lengths["abc"] = 10_000

        assert RemoteCacheStorage(store, workdir, max_size=5_000).fetch("abc") is False

    def test_object_within_limit_is_fetched(self, store, workdir, snapshot):
        data = _tar_of({"a.txt": b"a"})
        store.objects["abc"] = data

        assert RemoteCacheStorage(store, workdir, max_size=len(data)).fetch("abc")
        assert snapshot(workdir) == {"a.txt": b"a"}

    def test_body_is_released_after_success(self, store, workdir):
        store.objects["abc"] = _tar_of({"a.txt": b"a"})

        RemoteCacheStorage(store, workdir).fetch("abc")

        assert store.closed_keys == ["abc"]

    def test_store_errors_propagate(self, workdir):
        class DeniedStore:
            def get_object(self, key):
                raise StoragePermissionError("denied", key=key)

        with pytest.raises(StoragePermissionError):
            RemoteCacheStorage(DeniedStore(), workdir).fetch("abc")

    def test_broken_body_writes_nothing(self, workdir):
        data = _tar_of({"a.txt": b"a" * 2048})
        closed = []

        def broken_body():
            yield data[:512]
            raise ConnectionResetError("connection reset by peer")

        class BrokenStore:
            def get_object(self, key):
                return StorageObject(
                    descriptor=ObjectDescriptor(key=key, content_length=len(data)),
                    body=broken_body(),
                    on_close=lambda: closed.append(key),
                )

        with pytest.raises(ConnectionResetError):
            RemoteCacheStorage(BrokenStore(), workdir).fetch("abc")

        assert list(workdir.iterdir()) == []
        assert closed == ["abc"]

    def test_hanging_download_times_out(self, workdir):
        def stalled_body():
            time.sleep(1.0)
            yield b""

        class StalledStore:
            def get_object(self, key):
                return StorageObject(descriptor=ObjectDescriptor(key=key), body=stalled_body())

        storage = RemoteCacheStorage(StalledStore(), workdir, hang_timeout=0.1)

        with pytest.raises(HangTimeoutError) as exc_info:
            storage.fetch("abc")

        assert str(exc_info.value) == "The fetch request to abc seems to be hanging"
        assert exc_info.value.key == "abc"

    def test_fetch_logs_hit(self, store, workdir, caplog):
        store.objects["abc"] = _tar_of({"a.txt": b"a"})

        with caplog.at_level(logging.INFO, logger="build_cache_storage.storage.base"):
            RemoteCacheStorage(store, workdir).fetch("abc")

        assert "Cache hit for abc" in caplog.text


class TestPut:
    def test_oversize_output_is_not_uploaded(self, store, workdir, write_files, caplog):
        write_files(workdir, {"a.bin": b"x" * 6, "b.bin": b"y" * 6})

        with caplog.at_level(logging.DEBUG, logger="build_cache_storage.storage.remote"):
            RemoteCacheStorage(store, workdir, max_size=10).put("abc", ["a.bin", "b.bin"])

        assert store.put_calls == []
        assert "too large to be uploaded" in caplog.text

    def test_output_at_limit_is_uploaded(self, store, workdir, write_files):
        write_files(workdir, {"a.bin": b"x" * 10})

        RemoteCacheStorage(store, workdir, max_size=10).put("abc", ["a.bin"])

        assert store.put_calls == ["abc"]

    def test_missing_file_raises(self, store, workdir):
        with pytest.raises(FileNotFoundError):
            RemoteCacheStorage(store, workdir).put("abc", ["nope.txt"])
        assert store.put_calls == []

    def test_escaping_path_raises(self, store, workdir):
        with pytest.raises(ValueError):
            RemoteCacheStorage(store, workdir, max_size=100).put("abc", ["../outside.txt"])

    def test_symlink_leaving_cwd_is_archived_as_link(self, store, workdir, tmp_path):
        (tmp_path / "shared.txt").write_bytes(b"x" * 1000)
        (workdir / "shared.txt").symlink_to("../shared.txt")

        RemoteCacheStorage(store, workdir, max_size=500).put("abc", ["shared.txt"])

        with tarfile.open(fileobj=io.BytesIO(store.objects["abc"])) as tar:
            member = tar.getmember("shared.txt")
            assert member.issym()
            assert member.linkname == "../shared.txt"

    def test_upload_error_propagates(self, workdir, write_files):
        write_files(workdir, {"a.txt": b"a"})

        class DeniedStore:
            def put_object(self, key, stream, content_type):
                stream.read()
                raise StoragePermissionError("denied", key=key)

        with pytest.raises(StoragePermissionError):
            RemoteCacheStorage(DeniedStore(), workdir).put("abc", ["a.txt"])


class TestIncrementalCaching:
    def test_only_files_changed_since_fetch_are_stored(self, store, workdir, write_files):
        write_files(workdir, {"old.txt": b"old", "new.txt": b"before"})
        past = time.time() - 3600
        os.utime(workdir / "old.txt", (past, past))
        os.utime(workdir / "new.txt", (past, past))
        storage = RemoteCacheStorage(store, workdir, incremental_caching=True)

        storage.fetch("abc")
        time.sleep(0.05)
        (workdir / "new.txt").write_bytes(b"after")
        storage.put("abc", ["old.txt", "new.txt"])

        with tarfile.open(fileobj=io.BytesIO(store.objects["abc"])) as tar:
            assert tar.getnames() == ["new.txt"]

    def test_without_prior_fetch_all_files_are_stored(self, store, workdir, write_files):
        write_files(workdir, {"a.txt": b"a", "b.txt": b"b"})
        storage = RemoteCacheStorage(store, workdir, incremental_caching=True)

        storage.put("abc", ["a.txt", "b.txt"])

        with tarfile.open(fileobj=io.BytesIO(store.objects["abc"])) as tar:
            assert sorted(tar.getnames()) == ["a.txt", "b.txt"]

    def test_fetch_time_is_consumed_by_put(self, store, workdir, write_files):
        write_files(workdir, {"a.txt": b"a"})
        past = time.time() - 3600
        os.utime(workdir / "a.txt", (past, past))
        storage = RemoteCacheStorage(store, workdir, incremental_caching=True)

        storage.fetch("abc")
        storage.put("abc", ["a.txt"])
        storage.put("abc", ["a.txt"])

        assert storage._fetch_times == {}
        with tarfile.open(fileobj=io.BytesIO(store.objects["abc"])) as tar:
            assert tar.getnames() == ["a.txt"]

    def test_fetch_times_not_recorded_when_disabled(self, store, workdir):
        storage = RemoteCacheStorage(store, workdir)

        for key in ("a", "b", "c"):
            storage.fetch(key)

        assert storage._fetch_times == {}

    def test_disabled_by_default(self, store, workdir, write_files):
        write_files(workdir, {"a.txt": b"a"})
        past = time.time() - 3600
        os.utime(workdir / "a.txt", (past, past))
        storage = RemoteCacheStorage(store, workdir)

        storage.fetch("abc")
        storage.put("abc", ["a.txt"])

        with tarfile.open(fileobj=io.BytesIO(store.objects["abc"])) as tar:
            assert tar.getnames() == ["a.txt"]
