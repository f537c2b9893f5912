import threading
import time
from pathlib import Path

import pytest

from music_browser.controller import ExpansionController
from music_browser.models import DirectoryEntry, TrackTags


def create_test_file(directory: Path, filename: str, content: bytes = b"dummy") -> Path:
    """Create a file with some content in the given directory."""
    file_path = directory / filename
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_bytes(content)
    return file_path


def make_entry(path, is_directory=False, size=10, hidden=False) -> DirectoryEntry:
    return DirectoryEntry(path=Path(path), is_directory=is_directory, size=size, modified=0.0, is_hidden=hidden)


def wait_until(predicate, timeout=5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FakeTagReader:
    """Tag reader returning canned tags per file name, optionally blocking until released."""

    def __init__(self, tags=None, block=False):
        self.tags = tags or {}
        self.calls = []
        self.release = threading.Event()
        if not block:
            self.release.set()
        self._lock = threading.Lock()

    def __call__(self, path: Path) -> TrackTags:
        with self._lock:
            self.calls.append(path)
        self.release.wait(5)
        value = self.tags.get(path.name)
        if isinstance(value, Exception):
            raise value
        return value or TrackTags.empty()


@pytest.fixture
def music_dir(tmp_path):
    """A small library: two album folders, loose tracks, and files the browser must hide."""
    root = tmp_path / "library"
    root.mkdir()
    (root / "Albums").mkdir()
    (root / "Singles").mkdir()
    create_test_file(root, "track10.mp3", b"x" * 30)
    create_test_file(root, "Track2.flac", b"x" * 20)
    create_test_file(root, "notes.txt")
    create_test_file(root, ".hidden.mp3")
    create_test_file(root / "Albums", "intro.wav")
    (root / "Albums" / "Disc 1").mkdir()
    return root


@pytest.fixture
def tag_reader():
    return FakeTagReader()


@pytest.fixture
def controller(tag_reader):
    ctrl = ExpansionController(tag_reader=tag_reader)
    yield ctrl
    tag_reader.release.set()
    ctrl.close()
