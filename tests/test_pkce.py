"""Tests for pkceflow.pkce -- verifier generation and the S256 transform."""

from __future__ import annotations

import pytest

from pkceflow.pkce import (
    DEFAULT_VERIFIER_LENGTH,
    VERIFIER_ALPHABET,
    generate_code_challenge,
    generate_code_verifier,
    generate_pkce_pair,
)


class TestCodeVerifier:
    def test_default_length(self) -> None:
        assert len(generate_code_verifier()) == DEFAULT_VERIFIER_LENGTH

    @pytest.mark.parametrize("length", [43, 64, 128])
    def test_allowed_lengths(self, length: int) -> None:
        assert len(generate_code_verifier(length)) == length

    @pytest.mark.parametrize("length", [0, 42, 129])
    def test_out_of_range_rejected(self, length: int) -> None:
        with pytest.raises(ValueError, match="between 43 and 128"):
            generate_code_verifier(length)

    def test_alphabet(self) -> None:
        verifier = generate_code_verifier(128)
        assert set(verifier) <= set(VERIFIER_ALPHABET)

    def test_fresh_each_call(self) -> None:
        assert generate_code_verifier() != generate_code_verifier()


class TestCodeChallenge:
    def test_rfc7636_vector(self) -> None:
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert generate_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_no_padding_and_urlsafe(self) -> None:
        challenge = generate_code_challenge(generate_code_verifier())
        assert len(challenge) == 43
        assert "=" not in challenge
        assert "+" not in challenge and "/" not in challenge

    def test_deterministic(self) -> None:
        assert generate_code_challenge("abc" * 20) == generate_code_challenge("abc" * 20)


class TestPkcePair:
    def test_pair_matches(self) -> None:
        verifier, challenge = generate_pkce_pair()
        assert generate_code_challenge(verifier) == challenge

    def test_custom_length(self) -> None:
        verifier, _ = generate_pkce_pair(50)
        assert len(verifier) == 50
