from dataclasses import dataclass

from trackfs.services.track_names import (
    generate_unique_track_name,
    is_track_name_available,
    validate_track_name,
)


@dataclass
class Track:
    id: str | None
    name: str
    folder: str | None


TRACKS = [
    Track("1", "Kick", "Drums"),
    Track("2", "Kick 2", "Drums"),
    Track("3", "Snare", None),
]


def test_is_track_name_available_is_case_insensitive_per_folder():
    assert is_track_name_available("kick", "Drums", TRACKS) is False
    assert is_track_name_available("  KICK ", "Drums", TRACKS) is False
    assert is_track_name_available("Kick", None, TRACKS) is True
    assert is_track_name_available("Kick", "Drums", TRACKS, exclude_id="1") is True
    assert is_track_name_available("   ", None, TRACKS) is False


def test_generate_unique_track_name():
    assert generate_unique_track_name("Kick", "Drums", TRACKS) == "Kick 3"
    assert generate_unique_track_name("Hat", "Drums", TRACKS) == "Hat"
    assert generate_unique_track_name("snare", None, TRACKS) == "snare 2"


def test_validate_track_name():
    assert validate_track_name("", None, TRACKS) == "Track name cannot be empty"
    assert validate_track_name("x" * 101, None, TRACKS) == "Track name is too long (max 100 characters)"
    assert validate_track_name("what?", None, TRACKS) == "Track name contains invalid characters"
    assert validate_track_name("Snare", None, TRACKS) == 'A track named "Snare" already exists in root folder'
    assert validate_track_name("Kick", "Drums", TRACKS) == 'A track named "Kick" already exists in Drums'
    assert validate_track_name("Kick", "Drums", TRACKS, exclude_id="1") is None
    assert validate_track_name("x" * 100, None, TRACKS) is None
