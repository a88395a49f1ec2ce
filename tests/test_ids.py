import pytest

from shortlinks.ids import ALPHABET, canonical_url, fingerprint, new_display_id


def test_alphabet_has_no_ambiguous_characters():
    assert len(ALPHABET) == 58
    assert len(set(ALPHABET)) == 58
    for ch in "0OIl":
        assert ch not in ALPHABET


@pytest.mark.parametrize("length", [7, 44])
def test_display_id_length_and_alphabet(length):
    value = new_display_id(length)
    assert len(value) == length
    assert set(value) <= set(ALPHABET)


def test_display_ids_are_random():
    assert len({new_display_id(7) for _ in range(50)}) > 45


def test_fingerprint_is_deterministic():
    url = canonical_url("https://example.com/a")
    assert fingerprint(url) == fingerprint(url)
    assert len(fingerprint(url)) == 32


def test_fingerprint_differs_for_distinct_urls():
    assert fingerprint("https://example.com/a") != fingerprint("https://example.com/b")


def test_canonical_url_keeps_simple_urls():
    assert canonical_url("https://example.com/a") == "https://example.com/a"
    assert canonical_url("  https://example.com/a?x=1\n") == "https://example.com/a?x=1"


@pytest.mark.parametrize("raw", ["", "   ", "not a url", "example.com/path", "http://"])
def test_canonical_url_rejects_malformed(raw):
    with pytest.raises(ValueError):
        canonical_url(raw)
