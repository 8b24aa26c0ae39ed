# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""ES256K-R JSON Web Tokens issued by did:ethr identities.

Tokens use the recoverable secp256k1 scheme: the signature is taken over
``sha256(<header>.<payload>)`` and serialised as ``r || s || recovery``,
base64url encoded. Verification recovers the public key and checks it
against the issuer's DID document, so no key needs to be distributed
beforehand.

Signing happens here because signers are async (remote signers, KMS);
verification goes through PyJWT with ``ES256K-R`` registered as an
algorithm, so claim handling (``exp``, ``nbf``, leeway) is PyJWT's.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import jwt
from jwt.algorithms import Algorithm
from jwt.utils import base64url_decode, base64url_encode

from ethr_did.core.config import get_config
from ethr_did.core.exceptions import InvalidAudienceError, InvalidTokenError, MalformedSignatureError
from ethr_did.identity.keys import Signature, Signer, recover_public_key
from ethr_did.resolution.resolver import DIDResolution, Resolver

logger = logging.getLogger(__name__)

ES256K_R = "ES256K-R"

# Verification method types carrying a secp256k1 key or account
SECP256K1_METHOD_TYPES = frozenset(
    {
        "EcdsaSecp256k1RecoveryMethod2020",
        "EcdsaSecp256k1VerificationKey2019",
        "Secp256k1VerificationKey2018",
        "Secp256k1SignatureVerificationKey2018",
        "EcdsaPublicKeySecp256k1",
    }
)


# =============================================================================
# ALGORITHM
# =============================================================================


def _account_address(method: dict[str, Any]) -> str | None:
    account = method.get("blockchainAccountId")
    if account:
        # CAIP-10 "eip155:<chain>:<address>" or legacy "<address>@eip155:<chain>"
        address = account.split("@", 1)[0] if "@" in account else account.rsplit(":", 1)[-1]
        return address.lower()
    address = method.get("ethereumAddress")
    return address.lower() if address else None


def match_authenticator(
    signing_input: bytes,
    signature: bytes,
    authenticators: list[dict[str, Any]],
) -> dict[str, Any] | None:
    """Return the verification method that produced *signature*, if any."""
    try:
        sig = Signature.from_bytes(signature)
        public_key = recover_public_key(hashlib.sha256(signing_input).digest(), sig)
    except MalformedSignatureError as e:
        logger.debug(f"Unrecoverable ES256K-R signature: {e}")
        return None

    address = public_key.to_checksum_address().lower()
    compressed = public_key.to_compressed_bytes().hex()
    uncompressed = public_key.to_bytes().hex()

    for method in authenticators:
        if _account_address(method) == address:
            return method
        key_hex = method.get("publicKeyHex")
        if key_hex:
            key_hex = key_hex.lower().removeprefix("0x")
            if key_hex in (compressed, uncompressed, f"04{uncompressed}"):
                return method
    return None


class ES256KRecoverableAlgorithm(Algorithm):
    """PyJWT algorithm for ``ES256K-R``.

    The verification "key" is the list of candidate verification methods from
    the issuer's DID document.
    """

    def prepare_key(self, key: Any) -> list[dict[str, Any]]:
        if isinstance(key, dict):
            return [key]
        if isinstance(key, (list, tuple)):
            return list(key)
        raise jwt.InvalidKeyError("ES256K-R verification needs DID verification methods")

    def sign(self, msg: bytes, key: Any) -> bytes:
        # Signing is async and lives in create_jwt
        raise NotImplementedError("Use create_jwt to sign ES256K-R tokens")

    def verify(self, msg: bytes, key: Any, sig: bytes) -> bool:
        return match_authenticator(msg, sig, key) is not None

    @staticmethod
    def to_jwk(key_obj: Any, as_dict: bool = False) -> Any:
        raise NotImplementedError

    @staticmethod
    def from_jwk(jwk: Any) -> Any:
        raise NotImplementedError


try:
    jwt.register_algorithm(ES256K_R, ES256KRecoverableAlgorithm())
except ValueError:
    # Already registered on this interpreter
    pass


# =============================================================================
# SIGNING
# =============================================================================


def _b64_json(value: dict[str, Any]) -> bytes:
    return base64url_encode(json.dumps(value, separators=(",", ":")).encode("utf-8"))


async def create_jwt(
    payload: dict[str, Any],
    issuer: str,
    signer: Signer,
    expires_in: int | None = None,
    header: dict[str, Any] | None = None,
) -> str:
    """Sign *payload* as *issuer* with *signer*.

    ``iat`` is added unless present, ``iss`` is always *issuer* and ``exp`` is
    set from *expires_in* when given.
    """
    claims = dict(payload)
    claims.setdefault("iat", int(time.time()))
    claims["iss"] = issuer
    if expires_in is not None:
        claims["exp"] = claims["iat"] + expires_in

    jose_header = {"typ": "JWT", "alg": ES256K_R, **(header or {})}
    signing_input = _b64_json(jose_header) + b"." + _b64_json(claims)

    signature = await signer.sign(hashlib.sha256(signing_input).digest())
    token = signing_input + b"." + base64url_encode(signature.to_bytes())
    logger.debug(f"Issued JWT for {issuer} (claims: {sorted(claims)})")
    return token.decode("ascii")


# =============================================================================
# VERIFICATION
# =============================================================================


@dataclass
class JWTVerified:
    """A successfully verified token.

    Attributes:
        payload: Decoded claims.
        issuer: ``iss`` claim (the issuer DID).
        signer: The verification method that produced the signature.
        jwt: The original token.
        did_resolution: Resolution of the issuer used for verification.
    """

    payload: dict[str, Any]
    issuer: str
    signer: dict[str, Any]
    jwt: str
    did_resolution: DIDResolution


def _authenticators(document: dict[str, Any], auth: bool) -> list[dict[str, Any]]:
    methods = [m for m in document.get("verificationMethod", []) if m.get("type") in SECP256K1_METHOD_TYPES]
    if auth:
        allowed = {ref if isinstance(ref, str) else ref.get("id") for ref in document.get("authentication", [])}
        methods = [m for m in methods if m["id"] in allowed]
    return methods


def check_audience(payload: dict[str, Any], audience: str | None, callback_url: str | None) -> None:
    """Enforce the audience rule on verified claims.

    A token without ``aud`` is accepted. Otherwise ``aud`` (a string or list)
    must contain *audience* or *callback_url*.

    Raises:
        InvalidAudienceError: If neither is listed.
    """
    if "aud" not in payload:
        return
    aud = payload["aud"]
    accepted = [aud] if isinstance(aud, str) else list(aud or [])
    if (audience and audience in accepted) or (callback_url and callback_url in accepted):
        return
    raise InvalidAudienceError()


async def verify_jwt(
    token: str,
    resolver: Resolver,
    audience: str | None = None,
    callback_url: str | None = None,
    leeway: int | None = None,
    auth: bool = False,
) -> JWTVerified:
    """Verify an ES256K-R token against its issuer's DID document.

    Args:
        token: Compact JWT.
        resolver: Resolves the ``iss`` DID.
        audience: The verifying party's DID.
        callback_url: Alternative accepted audience; defaults to the configured one.
        leeway: Seconds of clock skew allowed for ``exp``/``nbf``; defaults to
            ``jwt_leeway_seconds`` from settings.
        auth: Only accept keys listed under ``authentication``.

    Raises:
        InvalidTokenError: If the token is malformed, expired, not yet valid,
            or not signed by a key in the issuer document.
        InvalidAudienceError: If ``aud`` names neither *audience* nor *callback_url*.
    """
    config = get_config()
    if leeway is None:
        leeway = config.jwt_leeway_seconds
    if callback_url is None:
        callback_url = config.callback_url

    try:
        header = jwt.get_unverified_header(token)
        unverified = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise InvalidTokenError(f"Incorrect format JWT: {e}") from e

    if header.get("alg") != ES256K_R:
        raise InvalidTokenError(f"Unsupported JWT algorithm: {header.get('alg')}", {"alg": header.get("alg")})
    issuer = unverified.get("iss")
    if not issuer:
        raise InvalidTokenError("JWT iss is required")

    resolution = await resolver.resolve(issuer)
    authenticators = _authenticators(resolution.did_document, auth)
    if not authenticators:
        raise InvalidTokenError(f"No authenticators found for {issuer}", {"issuer": issuer})

    try:
        payload = jwt.decode(
            token,
            authenticators,
            algorithms=[ES256K_R],
            leeway=leeway,
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError(f"JWT has expired: {e}") from e
    except jwt.ImmatureSignatureError as e:
        raise InvalidTokenError(f"JWT not valid yet: {e}") from e
    except jwt.InvalidSignatureError as e:
        raise InvalidTokenError("invalid_signature: Signature invalid for JWT", {"issuer": issuer}) from e
    except jwt.PyJWTError as e:
        raise InvalidTokenError(f"JWT verification failed: {e}") from e

    check_audience(payload, audience, callback_url)

    signing_input, _, encoded_signature = token.rpartition(".")
    signer = match_authenticator(
        signing_input.encode("ascii"),
        base64url_decode(encoded_signature),
        authenticators,
    )
    assert signer is not None
    logger.debug(f"Verified JWT from {issuer} signed by {signer['id']}")
    return JWTVerified(payload=payload, issuer=issuer, signer=signer, jwt=token, did_resolution=resolution)
