import functools
import locale
import logging
import os

import pytest

from conftest import FakeTagReader, create_test_file

from music_browser import cli
from music_browser.bookmarks import resolve_bookmark
from music_browser.controller import ExpansionController
from music_browser.errors import AccessDeniedError
from music_browser.filesystem import FilesystemAccessor


@pytest.fixture(autouse=True)
def keep_collation(monkeypatch):
    monkeypatch.setattr(locale, "setlocale", lambda category, value=None: "C")
    yield
    logger = logging.getLogger("music_browser")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def tree_lines(output):
    return [line for line in output.splitlines() if not line.startswith("[")]


def test_prints_tree_to_requested_depth(music_dir, capsys):
    assert cli.main([str(music_dir), "--depth", "2"]) == 0

    out = capsys.readouterr().out
    assert f"[start] browsing: {music_dir.resolve()}" in out
    assert tree_lines(out) == [
        "library/",
        "  Albums/",
        "    Disc 1/",
        "    intro.wav  [0.00 MB]",
        "  Singles/",
        "  Track2.flac  [0.00 MB]",
        "  track10.mp3  [0.00 MB]",
    ]


def test_depth_zero_shows_only_the_root(music_dir, capsys):
    cli.main([str(music_dir), "--depth", "0"])
    assert tree_lines(capsys.readouterr().out) == ["library/"]


def test_limit_and_show_hidden_flags(music_dir, capsys):
    cli.main([str(music_dir), "--limit", "2", "--show-hidden"])
    assert tree_lines(capsys.readouterr().out) == ["library/", "  Albums/", "  Singles/"]


def test_bookmark_file_round_trip(music_dir, tmp_path, capsys):
    bookmark_file = tmp_path / "state" / "root.bookmark"

    cli.main([str(music_dir), "--depth", "0", "--bookmark-file", str(bookmark_file)])
    assert f"[write] bookmark: {bookmark_file}" in capsys.readouterr().out
    assert resolve_bookmark(bookmark_file.read_bytes()).path == music_dir.resolve()

    cli.main(["--bookmark-file", str(bookmark_file)])
    assert tree_lines(capsys.readouterr().out)[0] == "library/"


def test_config_file_sets_limit(music_dir, tmp_path, capsys):
    config_file = tmp_path / "browser.json"
    config_file.write_text('{"child_limit": 1}', encoding="utf-8")

    cli.main([str(music_dir), "--config", str(config_file)])

    assert tree_lines(capsys.readouterr().out) == ["library/", "  Albums/"]


def test_unreadable_folders_become_warnings(music_dir, monkeypatch, capsys):
    real_list = FilesystemAccessor.list_children

    def _list(self, path):
        if path.name == "Albums":
            raise AccessDeniedError(f"access denied: {path}", path)
        return real_list(self, path)

    monkeypatch.setattr(FilesystemAccessor, "list_children", _list)

    assert cli.main([str(music_dir), "--depth", "2"]) == 0

    out = capsys.readouterr().out
    assert "[warn] access denied:" in out
    assert "  Albums/" in tree_lines(out)


def test_missing_root_exits_with_message(tmp_path):
    with pytest.raises(SystemExit, match="Cannot open directory"):
        cli.main([str(tmp_path / "nowhere")])


def test_root_or_bookmark_is_required(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 2


def test_undecodable_file_names_do_not_stop_the_listing(tmp_path, capsys):
    root = tmp_path / "crate"
    root.mkdir()
    try:
        (root / os.fsdecode(b"\xff\xfe song.mp3")).write_bytes(b"dummy")
    except (OSError, UnicodeError):
        pytest.skip("filesystem rejects non-UTF-8 names")
    create_test_file(root, "plain.mp3")

    assert cli.main([str(root)]) == 0

    lines = [line.strip() for line in tree_lines(capsys.readouterr().out)]
    assert lines[0] == "crate/"
    assert "\ufffd\ufffd song.mp3  [0.00 MB]" in lines
    assert "plain.mp3  [0.00 MB]" in lines


def test_slow_tag_reads_time_out_with_a_warning(music_dir, monkeypatch, capsys):
    reader = FakeTagReader(block=True)
    monkeypatch.setattr(cli, "ExpansionController", functools.partial(ExpansionController, tag_reader=reader))

    try:
        assert cli.main([str(music_dir), "--tag-timeout", "0.2"]) == 0
    finally:
        reader.release.set()

    out = capsys.readouterr().out
    assert "[warn] tag reading timed out after 0.2s; 2 files shown without key/BPM" in out
    assert "  track10.mp3  [0.00 MB]" in tree_lines(out)


def test_tag_timeout_must_be_positive(music_dir):
    with pytest.raises(SystemExit) as excinfo:
        cli.main([str(music_dir), "--tag-timeout", "0"])
    assert excinfo.value.code == 2
