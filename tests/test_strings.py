"""
Tests for key and file name helpers.
"""

import re
from datetime import datetime

import pytest

from media_gateway.core.exceptions import InvalidFilenameError
from media_gateway.services.upload_service import build_signed_upload_key
from media_gateway.utils.strings import (FILENAME_PATTERN, gen_random_string,
                                         remove_diacritics,
                                         slugify_filename_stem, split_filename,
                                         unique_file_name)

SIGNED_KEY_PATTERN = re.compile(r"^event/medias/\d{4}-\d{1,2}/[a-z0-9().\-_]+-\d+\.[A-Za-z0-9]+$")


@pytest.mark.parametrize(
    "value,expected",
    [
        ("Báo cáo Q3", "Bao cao Q3"),
        ("Tệp Tin Đẹp", "Tep Tin Dep"),
        ("đường", "duong"),
        ("plain-ascii_name.png", "plain-ascii_name.png"),
        ("", ""),
    ],
)
def test_remove_diacritics(value, expected):
    assert remove_diacritics(value) == expected


def test_slugify_collapses_whitespace():
    assert slugify_filename_stem("  Báo   cáo \t Q3 ") == "bao-cao-q3"


def test_split_filename_keeps_extension_case():
    assert split_filename("Photo.JPG") == ("Photo", "JPG")
    assert split_filename("archive.tar.gz") == ("archive.tar", "gz")
    assert split_filename("README") == ("README", "")


def test_random_string_alphabet():
    token = gen_random_string(50)
    assert len(token) == 50
    assert token.isalnum()
    assert token.isascii()


def test_unique_file_name_shape():
    assert re.fullmatch(r"[A-Za-z0-9]{20}_\d{13}\.jpg", unique_file_name("jpg"))


def test_unique_file_names_do_not_collide():
    names = {unique_file_name("png") for _ in range(10_000)}
    assert len(names) == 10_000


@pytest.mark.parametrize(
    "filename",
    ["photo.jpg", "Báo cáo Q3.png", "my file (1).PDF", "a_b-c.d.mp4"],
)
def test_filename_pattern_accepts(filename):
    assert FILENAME_PATTERN.match(filename)


@pytest.mark.parametrize(
    "filename",
    ["noextension", "../etc/passwd.png", "a/b.png", "name.", "semi;colon.png"],
)
def test_filename_pattern_rejects(filename):
    assert not FILENAME_PATTERN.match(filename)


def test_signed_key_layout():
    now = datetime(2024, 3, 5, 10, 30)
    key = build_signed_upload_key("Báo cáo Q3.png", now)

    assert key == f"event/medias/2024-3/bao-cao-q3-{int(now.timestamp() * 1000)}.png"
    assert SIGNED_KEY_PATTERN.match(key)


@pytest.mark.parametrize("filename", [".png", "   .jpg", "noext"])
def test_signed_key_rejects_unusable_names(filename):
    with pytest.raises(InvalidFilenameError):
        build_signed_upload_key(filename)
