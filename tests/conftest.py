"""Shared fixtures for archive_restore tests."""

import io
import tarfile

import pytest

from archive_restore.instance import Instance


@pytest.fixture
def instance(tmp_path):
    """Instance with an in-memory document store and content under tmp_path."""
    inst = Instance.in_memory("alice.example.net", tmp_path / "content")
    yield inst
    inst.db.close()


@pytest.fixture
def fs(instance):
    return instance.fs


@pytest.fixture
def db(instance):
    return instance.db


@pytest.fixture
def make_archive():
    """
    Build a tar.gz archive in memory.

    Entries are (name, content) pairs; content None makes a directory entry,
    a TarInfo is added as is (for links and other entry kinds).
    """

    def build(entries, mode=0o644):
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:gz") as tar:
            for entry in entries:
                if isinstance(entry, tarfile.TarInfo):
                    tar.addfile(entry)
                    continue
                name, content = entry
                info = tarfile.TarInfo(name)
                if content is None:
                    info.type = tarfile.DIRTYPE
                    info.mode = 0o755
                    tar.addfile(info)
                    continue
                if isinstance(content, str):
                    content = content.encode("utf-8")
                info.size = len(content)
                info.mode = mode
                tar.addfile(info, io.BytesIO(content))
        buf.seek(0)
        return buf

    return build
