from __future__ import annotations

from hrms_api.auth.passwords import (
    hash_password,
    is_password_hashed,
    verify_legacy_plaintext,
    verify_password,
)


def test_hash_and_verify() -> None:
    hashed = hash_password("correct horse", rounds=4)
    assert is_password_hashed(hashed)
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


def test_plain_text_is_not_mistaken_for_a_hash() -> None:
    assert not is_password_hashed("correct")
    assert not is_password_hashed("")
    assert not is_password_hashed(None)


def test_verify_against_garbage_hash_is_false() -> None:
    assert not verify_password("x", "$2b$04$not-a-real-hash")


def test_legacy_plaintext_comparison() -> None:
    assert verify_legacy_plaintext("correct", "correct")
    assert not verify_legacy_plaintext("correct", "Correct")
