from conftest import make_entry

from music_browser.config import BrowserConfig
from music_browser.policy import apply_policy, is_visible, natural_key, sort_key


def names(entries):
    return [entry.name for entry in entries]


def test_directories_first_then_natural_case_insensitive_order():
    entries = [
        make_entry("/lib/track10.mp3"),
        make_entry("/lib/zeta", is_directory=True),
        make_entry("/lib/Track2.mp3"),
        make_entry("/lib/alpha", is_directory=True),
        make_entry("/lib/track1.mp3"),
    ]

    ordered = apply_policy(entries, BrowserConfig())

    assert names(ordered) == ["alpha", "zeta", "track1.mp3", "Track2.mp3", "track10.mp3"]


def test_hidden_and_non_audio_entries_are_dropped():
    entries = [
        make_entry("/lib/.hidden.mp3", hidden=True),
        make_entry("/lib/readme.txt"),
        make_entry("/lib/song.mp3"),
        make_entry("/lib/sub", is_directory=True),
    ]

    ordered = apply_policy(entries, BrowserConfig())

    assert names(ordered) == ["sub", "song.mp3"]


def test_directories_are_kept_regardless_of_extension():
    assert is_visible(make_entry("/lib/covers.txt", is_directory=True), BrowserConfig())


def test_hidden_directory_is_dropped():
    assert not is_visible(make_entry("/lib/.cache", is_directory=True, hidden=True), BrowserConfig())


def test_extension_match_is_case_insensitive():
    config = BrowserConfig()
    for name in ["A.MP3", "b.Wav", "c.aiff", "d.FLAC", "e.aac", "f.m4a", "g.ogg"]:
        assert is_visible(make_entry(f"/lib/{name}"), config), name
    assert not is_visible(make_entry("/lib/h.opus"), config)


def test_show_hidden_keeps_hidden_audio():
    config = BrowserConfig(show_hidden=True)
    assert names(apply_policy([make_entry("/lib/.b.mp3", hidden=True)], config)) == [".b.mp3"]


def test_custom_extension_allow_list():
    config = BrowserConfig(audio_extensions=frozenset({"opus"}))
    ordered = apply_policy([make_entry("/lib/a.opus"), make_entry("/lib/b.mp3")], config)
    assert names(ordered) == ["a.opus"]


def test_natural_key_handles_leading_digits_and_letters():
    # Must not raise when one name starts with a number and another with text.
    keys = sorted(["a1", "10", "1a", "2"], key=natural_key)
    assert keys == ["1a", "2", "10", "a1"]


def test_sort_key_breaks_ties_by_path():
    first = make_entry("/a/Song.mp3")
    second = make_entry("/b/song.mp3")
    assert sort_key(first) < sort_key(second)
