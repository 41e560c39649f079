import pytest

from utils.slug import generate_unique_slug, normalize_slug


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Al Nour Market", "al-nour-market"),
        ("  --Fresh__Market!!  ", "fresh-market"),
        ("بقالة النور", "بقالة-النور"),
        ("ＡＢＣ 12", "abc-12"),
        ("", ""),
        ("***", ""),
    ],
)
def test_normalize_slug(raw, expected):
    assert normalize_slug(raw) == expected


def test_generate_unique_slug_appends_suffix():
    taken = {"al-nour", "al-nour-1"}

    assert generate_unique_slug("Al Nour", taken.__contains__) == "al-nour-2"
    assert generate_unique_slug("Al Amal", taken.__contains__) == "al-amal"


def test_generate_unique_slug_needs_usable_characters():
    with pytest.raises(ValueError):
        generate_unique_slug("!!!", lambda candidate: False)
