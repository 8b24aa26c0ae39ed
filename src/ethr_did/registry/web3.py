# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""ERC-1056 registry access over JSON-RPC.

Wraps a deployed ``EthereumDIDRegistry`` with ``web3.AsyncWeb3``. Reads are
plain ``eth_call``; writes are either signed locally with an
``eth_account`` key (when one is configured) or sent with
``eth_sendTransaction`` from a node-managed account.

History is read the way the contract links it: ``changed(identity)`` holds
the block of the latest change and every event carries ``previousChange``,
so resolution only fetches logs from blocks that touched the identity.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import encode_hex, keccak
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted

from ethr_did.core.config import IdentitySettings, get_config
from ethr_did.core.exceptions import ConfigurationError, RegistryError
from ethr_did.identity.hashing import decode_bytes32
from ethr_did.identity.models import normalize_address
from ethr_did.registry.base import (
    AttributeChanged,
    DelegateChanged,
    DirectCall,
    OwnerChanged,
    RegistryEvent,
    SignedPayload,
)

logger = logging.getLogger(__name__)

DEFAULT_TX_WAIT_TIMEOUT = 300.0


def _inputs(*specs: str) -> list[dict[str, str]]:
    return [{"name": name, "type": type_} for type_, name in (spec.split() for spec in specs)]


def _function(name: str, inputs: list[str], outputs: list[str] | None = None) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": _inputs(*inputs),
        "outputs": _inputs(*(outputs or [])),
        "stateMutability": "view" if outputs else "nonpayable",
    }


def _event(name: str, fields: list[str]) -> dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [{"name": "identity", "type": "address", "indexed": True}]
        + [{**field, "indexed": False} for field in _inputs(*fields)],
    }


_SIG = ["uint8 sigV", "bytes32 sigR", "bytes32 sigS"]
_MUTATION_FIELDS = {
    "changeOwner": ["address newOwner"],
    "addDelegate": ["bytes32 delegateType", "address delegate", "uint256 validity"],
    "revokeDelegate": ["bytes32 delegateType", "address delegate"],
    "setAttribute": ["bytes32 name", "bytes value", "uint256 validity"],
    "revokeAttribute": ["bytes32 name", "bytes value"],
}

REGISTRY_ABI: list[dict[str, Any]] = [
    _function("identityOwner", ["address identity"], ["address owner"]),
    _function("validDelegate", ["address identity", "bytes32 delegateType", "address delegate"], ["bool valid"]),
    _function("changed", ["address identity"], ["uint256 block"]),
    _function("nonce", ["address signer"], ["uint256 nonce"]),
    *(_function(name, ["address identity", *fields]) for name, fields in _MUTATION_FIELDS.items()),
    *(_function(f"{name}Signed", ["address identity", *_SIG, *fields]) for name, fields in _MUTATION_FIELDS.items()),
    _event("DIDOwnerChanged", ["address owner", "uint256 previousChange"]),
    _event(
        "DIDDelegateChanged",
        ["bytes32 delegateType", "address delegate", "uint256 validTo", "uint256 previousChange"],
    ),
    _event("DIDAttributeChanged", ["bytes32 name", "bytes value", "uint256 validTo", "uint256 previousChange"]),
]

_EVENT_TOPICS = {
    keccak(text="DIDOwnerChanged(address,address,uint256)"): "DIDOwnerChanged",
    keccak(text="DIDDelegateChanged(address,bytes32,address,uint256,uint256)"): "DIDDelegateChanged",
    keccak(text="DIDAttributeChanged(address,bytes32,bytes,uint256,uint256)"): "DIDAttributeChanged",
}


class Web3Registry:
    """Registry provider and event source backed by a JSON-RPC node.

    Args:
        w3: Connected ``AsyncWeb3`` instance.
        address: Registry contract address.
        account: Local account used to sign transactions. Without one,
            transactions are sent from the node's unlocked accounts.
        tx_timeout: Seconds to wait for a transaction receipt.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        address: str,
        account: LocalAccount | None = None,
        tx_timeout: float = DEFAULT_TX_WAIT_TIMEOUT,
    ) -> None:
        self._w3 = w3
        self._address = normalize_address(address, "registry")
        self._contract = w3.eth.contract(address=self._address, abi=REGISTRY_ABI)
        self._account = account
        self._tx_timeout = tx_timeout

    @classmethod
    def from_settings(
        cls,
        settings: IdentitySettings | None = None,
        private_key: str | None = None,
    ) -> Web3Registry:
        """Connect to ``rpc_url`` and the configured registry address."""
        settings = settings or get_config()
        if not settings.rpc_url:
            raise ConfigurationError("ETHR_DID_RPC_URL is not set")
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.rpc_url))
        account = Account.from_key(private_key) if private_key else None
        return cls(w3, settings.registry_address, account=account)

    @property
    def address(self) -> str:
        return self._address

    # -- reads --------------------------------------------------------------

    async def get_owner(self, identity: str) -> str:
        return await self._contract.functions.identityOwner(normalize_address(identity, "identity")).call()

    async def get_nonce(self, address: str) -> int:
        return await self._contract.functions.nonce(normalize_address(address)).call()

    async def valid_delegate(self, identity: str, delegate_type: str, delegate: str) -> bool:
        return await self._contract.functions.validDelegate(
            normalize_address(identity, "identity"),
            delegate_type.encode("utf-8").ljust(32, b"\x00"),
            normalize_address(delegate, "delegate"),
        ).call()

    async def current_timestamp(self) -> int:
        block = await self._w3.eth.get_block("latest")
        return block["timestamp"]

    async def get_events(self, identity: str) -> list[RegistryEvent]:
        """Walk the ``previousChange`` chain back from ``changed(identity)``."""
        identity = normalize_address(identity, "identity")
        identity_topic = encode_hex(bytes.fromhex(identity[2:]).rjust(32, b"\x00"))
        block = await self._contract.functions.changed(identity).call()

        collected: list[tuple[int, int, RegistryEvent]] = []
        timestamps: dict[int, int] = {}
        seen: set[int] = set()
        while block and block not in seen:
            seen.add(block)
            logs = await self._w3.eth.get_logs(
                {
                    "address": self._address,
                    "fromBlock": block,
                    "toBlock": block,
                    "topics": [None, identity_topic],
                }
            )
            previous = 0
            for log in logs:
                name = _EVENT_TOPICS.get(bytes(log["topics"][0]))
                if name is None:
                    continue
                decoded = getattr(self._contract.events, name)().process_log(log)
                if block not in timestamps:
                    timestamps[block] = (await self._w3.eth.get_block(block))["timestamp"]
                event = self._to_event(name, decoded, timestamps[block])
                collected.append((log["blockNumber"], log["logIndex"], event))
                change = decoded["args"]["previousChange"]
                if change < block:
                    previous = max(previous, change)
            block = previous

        collected.sort(key=lambda item: (item[0], item[1]))
        logger.debug(f"Fetched {len(collected)} registry events for {identity} from {len(seen)} blocks")
        return [event for _, _, event in collected]

    @staticmethod
    def _to_event(name: str, decoded: Any, timestamp: int) -> RegistryEvent:
        args = decoded["args"]
        common = {
            "identity": normalize_address(args["identity"], "identity"),
            "timestamp": timestamp,
            "block_number": decoded["blockNumber"],
            "tx_hash": encode_hex(bytes(decoded["transactionHash"])),
        }
        if name == "DIDOwnerChanged":
            return OwnerChanged(**common, owner=normalize_address(args["owner"], "owner"))
        if name == "DIDDelegateChanged":
            return DelegateChanged(
                **common,
                delegate_type=decode_bytes32(args["delegateType"]),
                delegate=normalize_address(args["delegate"], "delegate"),
                valid_to=args["validTo"],
            )
        return AttributeChanged(
            **common,
            name=decode_bytes32(args["name"]),
            value=bytes(args["value"]),
            valid_to=args["validTo"],
        )

    # -- writes -------------------------------------------------------------

    async def send_direct(self, call: DirectCall, sender: str) -> str:
        return await self._transact(call.function, call.args, sender, call.gas_limit)

    async def send_signed(self, payload: SignedPayload, sender: str) -> str:
        return await self._transact(payload.function, payload.args, sender, payload.gas_limit)

    async def _transact(self, function_name: str, args: tuple[Any, ...], sender: str, gas_limit: int | None) -> str:
        sender = normalize_address(sender, "sender")
        function = getattr(self._contract.functions, function_name)(*args)
        params: dict[str, Any] = {"from": sender}
        if gas_limit is not None:
            params["gas"] = gas_limit

        if self._account is not None:
            if self._account.address != sender:
                raise ConfigurationError(
                    f"Configured account {self._account.address} cannot send for {sender}",
                    {"account": self._account.address, "sender": sender},
                )
            params["nonce"] = await self._w3.eth.get_transaction_count(sender)
            params["chainId"] = await self._w3.eth.chain_id
            tx = await function.build_transaction(params)
            signed = self._account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        else:
            tx_hash = await function.transact(params)

        try:
            receipt = await asyncio.wait_for(
                self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._tx_timeout),
                self._tx_timeout,
            )
        except (TimeoutError, TimeExhausted):
            raise RegistryError(
                f"Transaction {encode_hex(bytes(tx_hash))} timed out after {self._tx_timeout}s",
                {"function": function_name},
            ) from None

        hex_hash = encode_hex(bytes(tx_hash))
        if receipt["status"] != 1:
            raise RegistryError(f"{function_name} reverted in {hex_hash}", {"tx_hash": hex_hash})
        logger.debug(f"{function_name} mined in block {receipt['blockNumber']} ({hex_hash})")
        return hex_hash
