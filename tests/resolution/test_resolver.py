"""End-to-end resolution: controller mutations read back through the event log."""

from __future__ import annotations

import pytest

from ethr_did.core.exceptions import InvalidInputError, UnsupportedNetworkError
from ethr_did.identity.controller import IdentityController
from ethr_did.identity.models import NULL_ADDRESS
from ethr_did.resolution.resolver import DIDResolution, EventLogResolver, Resolver


class TestResolve:
    def test_is_a_resolver(self, resolver):
        assert isinstance(resolver, Resolver)

    async def test_fresh_identity(self, resolver, controller):
        result = await resolver.resolve(controller.did)

        doc = result.did_document
        assert doc["id"] == controller.did
        assert [m["id"] for m in doc["verificationMethod"]] == [f"{controller.did}#controller"]
        assert "service" not in doc
        assert "keyAgreement" not in doc
        assert result.did_document_metadata == {}
        assert result.did_resolution_metadata == {"contentType": "application/did+ld+json"}

    async def test_fragment_is_dropped(self, resolver, controller):
        result = await resolver.resolve(f"{controller.did}#controller")

        assert result.did_document["id"] == controller.did

    async def test_metadata_tracks_latest_change(self, resolver, controller, delegate, clock):
        await controller.add_delegate(delegate.address)
        clock.advance(60)
        await controller.add_delegate(delegate.address, "sigAuth")

        metadata = (await resolver.resolve(controller.did)).did_document_metadata

        assert metadata == {"versionId": "2", "updated": "2023-11-14T22:14:20Z"}

    async def test_to_dict(self, resolver, controller):
        result = await resolver.resolve(controller.did)

        assert set(result.to_dict()) == {"didDocument", "didDocumentMetadata", "didResolutionMetadata"}
        assert isinstance(result, DIDResolution)

    async def test_other_network(self, resolver, owner):
        with pytest.raises(UnsupportedNetworkError) as exc_info:
            await resolver.resolve(f"did:ethr:dev:{owner.address}")

        assert exc_info.value.network == "dev"

    async def test_unknown_network_name(self, resolver, owner):
        with pytest.raises(UnsupportedNetworkError) as exc_info:
            await resolver.resolve(f"did:ethr:foo:{owner.address}")

        assert exc_info.value.network == "foo"

    async def test_named_network(self, registry, owner):
        resolver = EventLogResolver(registry, chain="dev")

        result = await resolver.resolve(f"did:ethr:dev:{owner.address}")

        assert result.did_document["verificationMethod"][0]["blockchainAccountId"] == f"eip155:1337:{owner.address}"

    async def test_not_a_did(self, resolver):
        with pytest.raises(InvalidInputError):
            await resolver.resolve("did:key:z6Mk")


class TestDelegateLifecycle:
    async def test_veri_key_delegate_expires(self, resolver, controller, delegate, clock):
        """A veriKey delegate asserts but does not authenticate, until it expires."""
        await controller.add_delegate(delegate.address, "veriKey", expires_in=86400)

        doc = (await resolver.resolve(controller.did)).did_document
        delegate_id = f"{controller.did}#delegate-1"
        assert doc["verificationMethod"][1]["blockchainAccountId"] == f"eip155:1:{delegate.address}"
        assert doc["assertionMethod"] == [f"{controller.did}#controller", delegate_id]
        assert doc["authentication"] == [f"{controller.did}#controller"]

        clock.advance(86401)

        doc = (await resolver.resolve(controller.did)).did_document
        assert doc["assertionMethod"] == [f"{controller.did}#controller"]
        assert len(doc["verificationMethod"]) == 1

    async def test_sig_auth_delegate_authenticates(self, resolver, controller, delegate):
        await controller.add_delegate(delegate.address, "sigAuth", expires_in=3600)

        doc = (await resolver.resolve(controller.did)).did_document

        assert f"{controller.did}#delegate-1" in doc["authentication"]
        assert f"{controller.did}#delegate-1" in doc["assertionMethod"]

    async def test_revoked_delegate_disappears(self, resolver, controller, delegate, other):
        await controller.add_delegate(delegate.address)
        await controller.revoke_delegate(delegate.address)
        await controller.add_delegate(other.address)

        doc = (await resolver.resolve(controller.did)).did_document

        assert [m["id"] for m in doc["verificationMethod"]] == [
            f"{controller.did}#controller",
            f"{controller.did}#delegate-2",
        ]

    async def test_revoke_and_re_add(self, resolver, controller, delegate, clock):
        """Re-adding before the original expiry keeps the id; after it, the id moves on."""
        await controller.add_delegate(delegate.address, expires_in=86400)
        clock.advance(10)
        await controller.revoke_delegate(delegate.address)
        clock.advance(10)
        await controller.add_delegate(delegate.address, expires_in=86400)

        doc = (await resolver.resolve(controller.did)).did_document
        assert doc["assertionMethod"] == [f"{controller.did}#controller", f"{controller.did}#delegate-1"]

        clock.advance(2 * 86400)
        await controller.add_delegate(delegate.address, expires_in=100)

        doc = (await resolver.resolve(controller.did)).did_document
        assert doc["assertionMethod"] == [f"{controller.did}#controller", f"{controller.did}#delegate-2"]

    async def test_extended_delegate_keeps_id(self, resolver, controller, delegate, clock):
        await controller.add_delegate(delegate.address, expires_in=100)
        clock.advance(50)
        await controller.add_delegate(delegate.address, expires_in=100)
        clock.advance(60)

        doc = (await resolver.resolve(controller.did)).did_document

        assert doc["assertionMethod"] == [f"{controller.did}#controller", f"{controller.did}#delegate-1"]


class TestAttributes:
    async def test_public_key_and_service(self, resolver, controller, delegate):
        key_hex = delegate.public_key
        await controller.set_attribute("did/pub/Secp256k1/veriKey/hex", key_hex)
        await controller.set_attribute("did/svc/HubService", "https://hubs.uport.me")

        doc = (await resolver.resolve(controller.did)).did_document

        did = controller.did
        assert doc["verificationMethod"][1] == {
            "id": f"{did}#delegate-1",
            "type": "EcdsaSecp256k1VerificationKey2019",
            "controller": did,
            "publicKeyHex": key_hex[2:],
        }
        assert doc["assertionMethod"] == [f"{did}#controller", f"{did}#delegate-1"]
        assert doc["service"] == [
            {"id": f"{did}#service-1", "type": "HubService", "serviceEndpoint": "https://hubs.uport.me"}
        ]

    async def test_encryption_key(self, resolver, controller):
        await controller.set_attribute("did/pub/X25519/enc/base64", "AQIDBA==")

        doc = (await resolver.resolve(controller.did)).did_document

        assert doc["keyAgreement"] == [f"{controller.did}#delegate-1"]
        assert doc["verificationMethod"][1]["publicKeyBase64"] == "AQIDBA=="

    async def test_revoked_service(self, resolver, controller):
        await controller.set_attribute("did/svc/HubService", "https://hubs.uport.me")
        await controller.revoke_attribute("did/svc/HubService", "https://hubs.uport.me")

        doc = (await resolver.resolve(controller.did)).did_document

        assert "service" not in doc


class TestOwnership:
    async def test_controller_key_until_owner_changes(self, registry, resolver, owner, other, settings):
        controller = IdentityController(owner.public_key, registry, settings=settings)

        doc = (await resolver.resolve(controller.did)).did_document
        assert f"{controller.did}#controllerKey" in doc["authentication"]

        await controller.change_owner(other.address)

        doc = (await resolver.resolve(controller.did)).did_document
        assert doc["verificationMethod"][0]["blockchainAccountId"] == f"eip155:1:{other.address}"
        assert f"{controller.did}#controllerKey" not in doc["authentication"]

    async def test_deactivated(self, resolver, controller, delegate):
        await controller.add_delegate(delegate.address)
        await controller.change_owner(NULL_ADDRESS)

        result = await resolver.resolve(controller.did)

        assert result.did_document_metadata["deactivated"] is True
        assert result.did_document["verificationMethod"] == []
        assert result.did_document["authentication"] == []
