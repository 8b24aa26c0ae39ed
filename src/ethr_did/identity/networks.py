# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Known networks for did:ethr identifiers.

The network part of a DID is either a name from :data:`KNOWN_NETWORKS` or a
hex chain id (``did:ethr:0x539:0x…``). Mainnet DIDs omit it entirely.
"""

from __future__ import annotations

from dataclasses import dataclass

from ethr_did.core.exceptions import ConfigurationError

MAINNET_CHAIN_ID = 1

KNOWN_NETWORKS: dict[str, int] = {
    "mainnet": 1,
    "goerli": 5,
    "sepolia": 11155111,
    "rsk": 30,
    "rsk:testnet": 31,
    "polygon": 137,
    "polygon:test": 80001,
    "linea:goerli": 59140,
    "dev": 1337,
}


@dataclass(frozen=True)
class Network:
    """A chain an identity lives on.

    Attributes:
        name: Name used in the DID (``""`` for mainnet).
        chain_id: EIP-155 chain id, used in ``blockchainAccountId`` values.
    """

    name: str
    chain_id: int

    @property
    def did_segment(self) -> str:
        """The ``<network>:`` part of the DID, empty for mainnet."""
        return f"{self.name}:" if self.name else ""


def resolve_network(chain: str | int | None) -> Network:
    """Turn a network name, decimal/hex chain id or ``None`` into a :class:`Network`.

    Raises:
        ConfigurationError: If the name is unknown and not a chain id.
    """
    if chain is None or chain == "" or chain == "mainnet":
        return Network(name="", chain_id=MAINNET_CHAIN_ID)

    if isinstance(chain, int):
        return _from_chain_id(chain)

    if chain in KNOWN_NETWORKS:
        return Network(name=chain, chain_id=KNOWN_NETWORKS[chain])

    try:
        chain_id = int(chain, 16) if chain.lower().startswith("0x") else int(chain)
    except ValueError:
        raise ConfigurationError(f"Unknown network: {chain}", {"chain": chain}) from None
    return _from_chain_id(chain_id)


def _from_chain_id(chain_id: int) -> Network:
    if chain_id == MAINNET_CHAIN_ID:
        return Network(name="", chain_id=MAINNET_CHAIN_ID)
    return Network(name=hex(chain_id), chain_id=chain_id)
