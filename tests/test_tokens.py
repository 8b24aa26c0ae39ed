"""Tests for ES256K-R token issuance and verification."""

from __future__ import annotations

import hashlib
import time

import jwt
import pytest
from jwt.utils import base64url_decode, base64url_encode

from ethr_did.core.exceptions import InvalidAudienceError, InvalidTokenError
from ethr_did.identity.controller import IdentityController
from ethr_did.tokens import (
    ES256K_R,
    ES256KRecoverableAlgorithm,
    check_audience,
    create_jwt,
    match_authenticator,
    verify_jwt,
)

CALLBACK = "https://app.example/callback"


# ---------------------------------------------------------------------------
# Issuing
# ---------------------------------------------------------------------------


class TestCreateJwt:
    async def test_header_and_claims(self, owner):
        token = await create_jwt({"hello": "world", "iat": 1000}, "did:ethr:issuer", owner, expires_in=60)

        assert jwt.get_unverified_header(token) == {"typ": "JWT", "alg": ES256K_R}
        claims = jwt.decode(token, options={"verify_signature": False})
        assert claims == {"hello": "world", "iat": 1000, "iss": "did:ethr:issuer", "exp": 1060}

    async def test_iat_defaults_to_now(self, owner):
        before = int(time.time())
        token = await create_jwt({}, "did:ethr:issuer", owner)

        claims = jwt.decode(token, options={"verify_signature": False})
        assert before <= claims["iat"] <= int(time.time())
        assert "exp" not in claims

    async def test_signature_is_recoverable(self, owner):
        token = await create_jwt({}, "did:ethr:issuer", owner)
        signing_input, _, encoded = token.rpartition(".")

        signature = base64url_decode(encoded)

        assert len(signature) == 65
        method = {"id": "k", "blockchainAccountId": f"eip155:1:{owner.address}"}
        assert match_authenticator(signing_input.encode(), signature, [method]) is method


class TestMatchAuthenticator:
    def _signed(self, signer):
        signing_input = b"header.payload"
        return signing_input, signer.sign_digest(hashlib.sha256(signing_input).digest()).to_bytes()

    def test_public_key_hex(self, owner):
        signing_input, signature = self._signed(owner)
        method = {"id": "k", "publicKeyHex": owner.public_key[2:]}

        assert match_authenticator(signing_input, signature, [method]) is method

    def test_legacy_account_format(self, owner):
        signing_input, signature = self._signed(owner)
        method = {"id": "k", "blockchainAccountId": f"{owner.address.lower()}@eip155:1"}

        assert match_authenticator(signing_input, signature, [method]) is method

    def test_ethereum_address(self, owner):
        signing_input, signature = self._signed(owner)
        method = {"id": "k", "ethereumAddress": owner.address}

        assert match_authenticator(signing_input, signature, [method]) is method

    def test_no_match(self, owner, other):
        signing_input, signature = self._signed(other)
        method = {"id": "k", "blockchainAccountId": f"eip155:1:{owner.address}"}

        assert match_authenticator(signing_input, signature, [method]) is None

    def test_garbage_signature(self, owner):
        method = {"id": "k", "blockchainAccountId": f"eip155:1:{owner.address}"}

        assert match_authenticator(b"header.payload", b"\x00" * 10, [method]) is None


class TestAlgorithm:
    def test_prepare_key(self):
        alg = ES256KRecoverableAlgorithm()

        assert alg.prepare_key({"id": "k"}) == [{"id": "k"}]
        with pytest.raises(jwt.InvalidKeyError):
            alg.prepare_key("not a method")

    def test_cannot_sign(self):
        with pytest.raises(NotImplementedError):
            ES256KRecoverableAlgorithm().sign(b"msg", [])


class TestCheckAudience:
    def test_rules(self):
        check_audience({}, "did:ethr:me", None)
        check_audience({"aud": "did:ethr:me"}, "did:ethr:me", None)
        check_audience({"aud": ["x", CALLBACK]}, "did:ethr:me", CALLBACK)

        with pytest.raises(InvalidAudienceError, match="JWT audience does not match your DID or callback url"):
            check_audience({"aud": "did:ethr:someone-else"}, "did:ethr:me", CALLBACK)

    def test_audience_required_to_accept_aud(self):
        with pytest.raises(InvalidAudienceError):
            check_audience({"aud": "did:ethr:me"}, None, None)


# ---------------------------------------------------------------------------
# Verifying
# ---------------------------------------------------------------------------


class TestVerifyJwt:
    async def test_round_trip(self, controller, resolver):
        token = await controller.sign_jwt({"hello": "world"})

        verified = await controller.verify_jwt(token, resolver)

        assert verified.payload["hello"] == "world"
        assert verified.issuer == controller.did
        assert verified.signer["id"] == f"{controller.did}#controller"
        assert verified.jwt == token
        assert verified.did_resolution.did_document["id"] == controller.did

    async def test_audience_mismatch(self, controller, resolver):
        token = await controller.sign_jwt({"aud": "did:ethr:0x" + "00" * 19 + "01"})

        with pytest.raises(InvalidAudienceError):
            await controller.verify_jwt(token, resolver)

    async def test_audience_is_own_did(self, controller, resolver):
        token = await controller.sign_jwt({"aud": [controller.did, "https://elsewhere"]})

        assert (await controller.verify_jwt(token, resolver)).payload["aud"][0] == controller.did

    async def test_audience_is_callback(self, registry, resolver, owner, settings):
        controller = IdentityController(owner.address, registry, signer=owner, callback_url=CALLBACK, settings=settings)
        token = await controller.sign_jwt({"aud": CALLBACK})

        verified = await controller.verify_jwt(token, resolver)

        assert verified.payload["aud"] == CALLBACK

    async def test_expired(self, controller, resolver):
        token = await controller.sign_jwt({"iat": int(time.time()) - 1000}, expires_in=100)

        with pytest.raises(InvalidTokenError, match="expired"):
            await controller.verify_jwt(token, resolver)

    async def test_expiry_within_leeway(self, controller, resolver):
        token = await controller.sign_jwt({"iat": int(time.time()) - 100}, expires_in=60)

        assert await controller.verify_jwt(token, resolver)

    async def test_not_yet_valid(self, controller, resolver):
        token = await controller.sign_jwt({"nbf": int(time.time()) + 3600})

        with pytest.raises(InvalidTokenError):
            await controller.verify_jwt(token, resolver)

    async def test_signed_by_unknown_key(self, controller, resolver, other):
        token = await create_jwt({}, controller.did, other)

        with pytest.raises(InvalidTokenError, match="invalid_signature"):
            await controller.verify_jwt(token, resolver)

    async def test_tampered_payload(self, controller, resolver):
        token = await controller.sign_jwt({"role": "user"})
        header, _, signature = token.split(".")
        forged_payload = base64url_encode(f'{{"role":"admin","iss":"{controller.did}"}}'.encode()).decode()

        with pytest.raises(InvalidTokenError):
            await controller.verify_jwt(f"{header}.{forged_payload}.{signature}", resolver)

    async def test_wrong_algorithm(self, controller, resolver):
        token = jwt.encode({"iss": controller.did}, "a-shared-secret-of-reasonable-length!", algorithm="HS256")

        with pytest.raises(InvalidTokenError, match="Unsupported JWT algorithm"):
            await controller.verify_jwt(token, resolver)

    async def test_malformed(self, resolver, settings):
        with pytest.raises(InvalidTokenError, match="Incorrect format"):
            await verify_jwt("not-a-jwt", resolver)

    async def test_signing_delegate(self, controller, resolver):
        """Tokens signed by a registered veriKey delegate verify as the identity."""
        key_pair, _ = await controller.create_signing_delegate()

        token = await controller.sign_jwt({"hello": "world"})
        verified = await controller.verify_jwt(token, resolver)

        assert verified.signer["id"] == f"{controller.did}#delegate-1"
        assert verified.signer["blockchainAccountId"].endswith(key_pair.address)

    async def test_auth_requires_authentication_key(self, controller, resolver, settings):
        await controller.create_signing_delegate("veriKey")
        token = await controller.sign_jwt({})

        with pytest.raises(InvalidTokenError, match="invalid_signature"):
            await verify_jwt(token, resolver, auth=True)

    async def test_revoked_delegate_stops_verifying(self, controller, resolver):
        key_pair, _ = await controller.create_signing_delegate()
        token = await controller.sign_jwt({})
        await controller.revoke_delegate(key_pair.address)

        with pytest.raises(InvalidTokenError):
            await controller.verify_jwt(token, resolver)
