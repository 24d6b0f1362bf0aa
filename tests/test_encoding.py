import pytest

from tokenvm.encoding import (
    AddressError,
    address,
    decode_id,
    encode_id,
    parse_address,
)

HRP = "token"
KEY = bytes(range(32))


def test_empty_id_text():
    assert encode_id(bytes(32)) == "11111111111111111111111111111111LpoYY"


@pytest.mark.parametrize("raw", [bytes(32), bytes(range(32)), b"\xff" * 32, b"\x00" * 31 + b"\x01"])
def test_id_round_trip(raw):
    assert decode_id(encode_id(raw)) == raw


def test_decode_id_bad_checksum():
    text = encode_id(KEY)
    replacement = "2" if text[-1] != "2" else "3"
    with pytest.raises(ValueError):
        decode_id(text[:-1] + replacement)


def test_decode_id_invalid_character():
    with pytest.raises(ValueError):
        decode_id("0" * 40)


def test_encode_id_wrong_length():
    with pytest.raises(ValueError):
        encode_id(b"\x01" * 31)


def test_address_round_trip():
    text = address(KEY, HRP)
    assert text.startswith(HRP + "1")
    assert parse_address(text, HRP) == KEY


def test_address_empty_key_round_trip():
    assert parse_address(address(bytes(32), HRP), HRP) == bytes(32)


def test_upper_case_address_parses():
    text = address(KEY, HRP)
    assert parse_address(text.upper(), HRP) == KEY


def test_mixed_case_rejected():
    text = address(KEY, HRP)
    mixed = text[:-1] + text[-1].upper()
    if mixed == text:
        mixed = text[0].upper() + text[1:]
    with pytest.raises(AddressError):
        parse_address(mixed, HRP)


def test_wrong_hrp_rejected():
    text = address(KEY, "other")
    with pytest.raises(AddressError):
        parse_address(text, HRP)


def test_corrupted_address_rejected():
    text = address(KEY, HRP)
    replacement = "q" if text[-1] != "q" else "p"
    with pytest.raises(AddressError):
        parse_address(text[:-1] + replacement, HRP)


def test_address_wrong_key_length():
    with pytest.raises(AddressError):
        address(b"\x01" * 31, HRP)


def test_address_garbage_rejected():
    with pytest.raises(AddressError):
        parse_address("not-an-address", HRP)