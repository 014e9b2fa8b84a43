"""Unit tests for auth/tokens.py -- TokenService and password hashing.

Covers:
- issue/decode round trip for several user ids
- two tokens for the same user are distinct
- garbage strings and claim-less JWTs -> MalformedToken
- tokens signed with another key or tampered -> BadSignature
- bcrypt hash/verify, including the 72-byte cut and corrupt hashes
"""

import pytest
from jose import jwt

from auth.exceptions import BadSignature, MalformedToken
from auth.tokens import TokenService, hash_password, verify_password

SECRET = "unit-test-secret-key-that-is-long-enough"
OTHER_SECRET = "another-secret-key-that-is-also-long-enough"


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(SECRET)


class TestTokenService:
    @pytest.mark.parametrize("user_id", [1, 2, 42, 10_000])
    def test_round_trip(self, tokens: TokenService, user_id: int) -> None:
        claims = tokens.decode(tokens.issue(user_id))
        assert claims.user_id == user_id
        assert claims.issued_at > 0

    def test_tokens_are_unique_per_issue(self, tokens: TokenService) -> None:
        issued = {tokens.issue(7) for _ in range(20)}
        assert len(issued) == 20

    def test_token_is_header_safe_ascii(self, tokens: TokenService) -> None:
        token = tokens.issue(1)
        assert token.isascii()
        assert " " not in token

    def test_payload_has_no_expiry_claim(self, tokens: TokenService) -> None:
        claims = jwt.get_unverified_claims(tokens.issue(1))
        assert "exp" not in claims

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b.c", "Bearer xyz"])
    def test_garbage_is_malformed(self, tokens: TokenService, garbage: str) -> None:
        with pytest.raises(MalformedToken):
            tokens.decode(garbage)

    def test_missing_claims_is_malformed(self, tokens: TokenService) -> None:
        token = jwt.encode({"sub": "someone"}, SECRET, algorithm="HS256")
        with pytest.raises(MalformedToken):
            tokens.decode(token)

    def test_boolean_user_id_is_malformed(self, tokens: TokenService) -> None:
        token = jwt.encode({"user_id": True, "issued_at": 1}, SECRET, algorithm="HS256")
        with pytest.raises(MalformedToken):
            tokens.decode(token)

    def test_foreign_key_is_bad_signature(self, tokens: TokenService) -> None:
        forged = TokenService(OTHER_SECRET).issue(1)
        with pytest.raises(BadSignature):
            tokens.decode(forged)

    def test_tampered_signature_is_bad_signature(self, tokens: TokenService) -> None:
        header, payload, signature = tokens.issue(1).split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
        with pytest.raises(BadSignature):
            tokens.decode(f"{header}.{payload}.{flipped}")

    def test_empty_key_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenService("")


class TestPasswordHashing:
    def test_hash_is_not_plaintext(self) -> None:
        hashed = hash_password("longenough1", rounds=4)
        assert hashed != "longenough1"
        assert hashed.startswith("$2")

    def test_verify_matches(self) -> None:
        hashed = hash_password("longenough1", rounds=4)
        assert verify_password("longenough1", hashed)
        assert not verify_password("longenough2", hashed)

    def test_salted(self) -> None:
        assert hash_password("same-password", rounds=4) != hash_password("same-password", rounds=4)

    def test_long_password_is_accepted(self) -> None:
        long_password = "ก" * 100  # 300 bytes in UTF-8
        hashed = hash_password(long_password, rounds=4)
        assert verify_password(long_password, hashed)

    def test_corrupt_hash_is_mismatch(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False
