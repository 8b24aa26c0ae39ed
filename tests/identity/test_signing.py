"""Tests for packaging signatures into relayable payloads."""

from __future__ import annotations

import pytest

from ethr_did.core.config import DEFAULT_REGISTRY_ADDRESS
from ethr_did.core.exceptions import MalformedSignatureError
from ethr_did.identity import hashing
from ethr_did.identity.signing import apply_signature
from ethr_did.registry.base import DirectCall


class TestApplySignature:
    def test_payload_reuses_hashed_fields(self, owner, delegate):
        mutation = hashing.add_delegate(owner.address, "sigAuth", delegate.address, 3600)
        sig = owner.sign_digest(mutation.digest(DEFAULT_REGISTRY_ADDRESS, 0))

        payload = apply_signature(mutation, sig)

        assert payload.function == "addDelegateSigned"
        assert payload.args == (owner.address, sig.v, sig.r, sig.s, *mutation.args)
        assert payload.mutation is mutation

    def test_direct_call_shares_the_fields(self, owner, delegate):
        mutation = hashing.revoke_delegate(owner.address, "veriKey", delegate.address)
        payload = apply_signature(mutation, {"v": 1, "r": b"\x01" * 32, "s": b"\x02" * 32})
        call = DirectCall(mutation)

        assert call.function == "revokeDelegate"
        assert payload.function == "revokeDelegateSigned"
        assert payload.args[4:] == call.args[1:]

    def test_normalises_v(self, owner, other):
        mutation = hashing.change_owner(owner.address, other.address)

        payload = apply_signature(mutation, {"v": 0, "r": b"\x01" * 32, "s": b"\x02" * 32})

        assert payload.signature.v == 27

    def test_gas_limit(self, owner):
        mutation = hashing.set_attribute(owner.address, "did/svc/HubService", "https://hubs.uport.me", 60)

        payload = apply_signature(mutation, {"v": 27, "r": b"\x01" * 32, "s": b"\x02" * 32}, gas_limit=123456)

        assert payload.gas_limit == 123456

    def test_does_not_verify(self, owner, other):
        """Any well-formed signature is packaged; the registry judges it."""
        mutation = hashing.change_owner(owner.address, other.address)
        sig = other.sign_digest(mutation.digest(DEFAULT_REGISTRY_ADDRESS, 0))

        assert apply_signature(mutation, sig).signature == sig

    @pytest.mark.parametrize(
        "signature",
        [
            {"r": b"\x01" * 32, "s": b"\x02" * 32},
            {"v": 27, "r": b"\x01" * 20, "s": b"\x02" * 32},
            {"v": 27, "r": b"\x01" * 32, "s": b"\x02" * 33},
        ],
    )
    def test_malformed(self, owner, other, signature):
        mutation = hashing.change_owner(owner.address, other.address)

        with pytest.raises(MalformedSignatureError):
            apply_signature(mutation, signature)
