import hashlib

import pytest

from offline_images.naming import (
    meaningful_name,
    sanitize_filename,
    synthesize_filename,
)

CONTENT = b"\xff\xd8 image bytes"
SHORT = hashlib.md5(CONTENT).hexdigest()[:8]


def test_hashed_name_uses_last_segment():
    name = synthesize_filename("https://cdn.example.org/img/photo123.jpg", CONTENT, "jpg")
    assert name == f"photo123-{SHORT}.jpg"


def test_hashed_name_skips_id_like_segments():
    url = "https://img.example.com/gallery/sunset/12345/deadbeefcafe"
    assert synthesize_filename(url, CONTENT, "png") == f"sunset-{SHORT}.png"


def test_hashed_name_falls_back_to_hostname():
    url = "https://img.example.com/12345"
    assert synthesize_filename(url, CONTENT, "gif") == f"img-example-com-{SHORT}.gif"


def test_hashed_name_without_fragment_is_bare_hash():
    digest = hashlib.md5(CONTENT).hexdigest()
    assert synthesize_filename("http://[::1/x.png", CONTENT, "png") == f"{digest}.png"


def test_hashed_name_truncates_fragment():
    url = "https://example.com/" + "a" * 50 + ".jpg"
    name = synthesize_filename(url, CONTENT, "jpg")
    assert name == "a" * 30 + f"-{SHORT}.jpg"


def test_sanitize_filename():
    assert sanitize_filename('a:b*c?"d<e>f|g\\h/i') == "a_b_c__d_e_f_g_h_i"


def test_meaningful_name():
    assert meaningful_name("https://example.com/a/b/pic.final.png") == "pic.final"
    assert meaningful_name("https://example.com/") == "example-com"


def test_original_name():
    url = "https://cdn.example.org/img/photo123.jpg"
    assert synthesize_filename(url, CONTENT, "jpg", use_hash=False) == "photo123.jpg"


def test_original_name_takes_resolved_extension():
    url = "https://example.com/pics/my.photo.png"
    assert synthesize_filename(url, CONTENT, "jpg", use_hash=False) == "my_photo.jpg"


def test_original_name_without_segment_uses_hash_name():
    name = synthesize_filename("https://example.com/", CONTENT, "jpg", use_hash=False)
    assert name == f"example-com-{SHORT}.jpg"


@pytest.mark.parametrize("use_hash", [True, False])
@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/a.b.c.png",
        "https://example.com/some%20file(1).jpeg",
        "https://example.com/dir/",
        "https://example.com/render?type=png",
    ],
)
def test_names_have_exactly_one_suffix(url, use_hash):
    name = synthesize_filename(url, CONTENT, "png", use_hash=use_hash)
    assert name.count(".") == 1
    assert name.endswith(".png")
