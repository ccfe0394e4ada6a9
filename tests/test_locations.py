"""Tests for utils/locations.py: drive and item addressing."""
import pytest

from onedrive_api.utils.locations import DriveLocation, ItemLocation, is_valid_file_name


# ── file names ───────────────────────────────────────────────────────

@pytest.mark.parametrize("name", ["report.pdf", "a b", "日本語.txt", ".hidden"])
def test_valid_file_names(name):
    assert is_valid_file_name(name)


@pytest.mark.parametrize("name", ["", "a/b", "a\\b", "a:b", "what?", "x*", "<x>", 'q"', "p|q"])
def test_invalid_file_names(name):
    assert not is_valid_file_name(name)


# ── DriveLocation ────────────────────────────────────────────────────

def test_drive_locations():
    assert DriveLocation.me().path == "me/drive"
    assert DriveLocation.from_user("alice@contoso.com").path == "users/alice%40contoso.com/drive"
    assert DriveLocation.from_group("g1").path == "groups/g1/drive"
    assert DriveLocation.from_site("s1").path == "sites/s1/drive"
    assert DriveLocation.from_id("d1").path == "drives/d1"


# ── ItemLocation ─────────────────────────────────────────────────────

def test_root():
    assert ItemLocation.root().to_api_path() == "root"
    assert ItemLocation.from_path("/").to_api_path() == "root"


def test_from_path():
    assert ItemLocation.from_path("/Documents/Reports").to_api_path() == "root:/Documents/Reports:"


def test_from_path_trailing_slash():
    assert ItemLocation.from_path("/Documents/") == ItemLocation.from_path("/Documents")


def test_from_path_quotes_spaces():
    assert ItemLocation.from_path("/My Files").to_api_path() == "root:/My%20Files:"


def test_from_path_relative_raises():
    with pytest.raises(ValueError, match="absolute"):
        ItemLocation.from_path("Documents")


def test_from_path_bad_component_raises():
    with pytest.raises(ValueError):
        ItemLocation.from_path("/a/b:c")


def test_from_path_empty_component_raises():
    with pytest.raises(ValueError):
        ItemLocation.from_path("/a//b")


def test_from_id():
    assert ItemLocation.from_id("01ABC").to_api_path() == "items/01ABC"


def test_child_api_path():
    assert ItemLocation.root().child_api_path("a.txt") == "root:/a.txt:"
    assert ItemLocation.from_path("/Docs").child_api_path("a.txt") == "root:/Docs/a.txt:"
    assert ItemLocation.from_id("F1").child_api_path("a.txt") == "items/F1:/a.txt:"


def test_child_api_path_invalid_name():
    with pytest.raises(ValueError):
        ItemLocation.root().child_api_path("a/b")
