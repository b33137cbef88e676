import pytest

from mispark.utils.plate_extractor import extract_license_plate, normalize_ocr_text


def test_strips_punctuation_and_uppercases():
    assert extract_license_plate("abc 123!!") == "ABC 123"


@pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
def test_empty_input_has_no_plate(text):
    assert extract_license_plate(text) is None


def test_plain_words_are_not_a_plate():
    assert extract_license_plate("no plate here") is None


def test_first_plate_wins():
    assert extract_license_plate("1AB 2345 and 7XY 1111") == "1AB 2345"


def test_plate_without_space():
    assert extract_license_plate("Parked: 5AC3344.") == "5AC3344"


def test_plate_inside_noisy_ocr_text():
    text = "CZ\n2SC-4321\nPraha"
    assert extract_license_plate(text) == "2SC4321"


def test_too_long_token_is_rejected():
    assert extract_license_plate("ABCDE1234567") is None


def test_is_deterministic():
    text = "4a2 1234 (blurred, rear view)"
    assert extract_license_plate(text) == extract_license_plate(text) == "4A2 1234"


def test_normalize_drops_non_ascii_letters():
    assert normalize_ocr_text("Škoda 1A2-3456") == "KODA 1A23456"
