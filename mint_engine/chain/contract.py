"""web3 client for the mint contract."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from web3 import Web3

from ..errors import ChainError, ConfigurationError


MINT_EVENT_SIGNATURE = "MintRequested(uint256,address,string)"

MINT_CONTRACT_ABI: list[dict[str, Any]] = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "uint256", "name": "tokenId", "type": "uint256"},
            {"indexed": True, "internalType": "address", "name": "buyer", "type": "address"},
            {"indexed": False, "internalType": "string", "name": "breed", "type": "string"},
        ],
        "name": "MintRequested",
        "type": "event",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "tokenId", "type": "uint256"}],
        "name": "tokenURI",
        "outputs": [{"internalType": "string", "name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "tokenId", "type": "uint256"},
            {"internalType": "string", "name": "uri", "type": "string"},
        ],
        "name": "setTokenURI",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


def mint_requested_topic() -> str:
    return Web3.to_hex(Web3.keccak(text=MINT_EVENT_SIGNATURE))


@dataclass(frozen=True)
class MintRequest:
    token_id: int
    buyer: str
    breed: str
    block_number: int
    log_index: int = 0
    tx_hash: str | None = None


class ChainClient(Protocol):
    def latest_block(self) -> int:
        ...

    def get_mint_requests(self, from_block: int, to_block: int) -> list[MintRequest]:
        ...

    def token_uri(self, token_id: int) -> str:
        ...

    def set_token_uri(self, token_id: int, uri: str) -> str:
        ...


class Web3MintContract:
    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        private_key: str,
        *,
        chain_id: int | None = None,
        receipt_timeout_s: float = 180.0,
    ) -> None:
        self.web3 = Web3(Web3.HTTPProvider(rpc_url))
        if not Web3.is_address(contract_address):
            raise ConfigurationError(f"CONTRACT_ADDRESS is not a valid address: {contract_address}")
        self.address = Web3.to_checksum_address(contract_address)
        self.contract = self.web3.eth.contract(address=self.address, abi=MINT_CONTRACT_ABI)
        try:
            self.account = self.web3.eth.account.from_key(private_key)
        except (ValueError, TypeError) as exc:
            raise ConfigurationError("PRIVATE_KEY could not be parsed.") from exc
        self.chain_id = chain_id
        self.receipt_timeout_s = receipt_timeout_s
        self._topic = mint_requested_topic()

    def latest_block(self) -> int:
        try:
            return int(self.web3.eth.block_number)
        except Exception as exc:
            raise ChainError(f"Failed to read latest block: {exc}") from exc

    def get_mint_requests(self, from_block: int, to_block: int) -> list[MintRequest]:
        try:
            logs = self.web3.eth.get_logs(
                {
                    "address": self.address,
                    "topics": [self._topic],
                    "fromBlock": from_block,
                    "toBlock": to_block,
                }
            )
            event = self.contract.events.MintRequested()
            requests: list[MintRequest] = []
            for log in logs:
                decoded = event.process_log(log)
                args = decoded["args"]
                requests.append(
                    MintRequest(
                        token_id=int(args["tokenId"]),
                        buyer=str(args["buyer"]),
                        breed=str(args["breed"]),
                        block_number=int(decoded["blockNumber"]),
                        log_index=int(decoded["logIndex"]),
                        tx_hash=Web3.to_hex(decoded["transactionHash"]),
                    )
                )
        except Exception as exc:
            raise ChainError(f"Failed to query MintRequested logs {from_block}-{to_block}: {exc}") from exc
        return requests

    def token_uri(self, token_id: int) -> str:
        try:
            return str(self.contract.functions.tokenURI(token_id).call() or "")
        except Exception as exc:
            raise ChainError(f"tokenURI({token_id}) failed: {exc}") from exc

    def set_token_uri(self, token_id: int, uri: str) -> str:
        try:
            nonce = self.web3.eth.get_transaction_count(self.account.address, "pending")
            params: dict[str, Any] = {"from": self.account.address, "nonce": nonce}
            if self.chain_id is not None:
                params["chainId"] = self.chain_id
            tx = self.contract.functions.setTokenURI(token_id, uri).build_transaction(params)
            signed = self.account.sign_transaction(tx)
            raw = getattr(signed, "raw_transaction", None) or signed.rawTransaction
            tx_hash = self.web3.eth.send_raw_transaction(raw)
            receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout_s)
        except Exception as exc:
            raise ChainError(f"setTokenURI({token_id}) failed: {exc}") from exc
        tx_hex = Web3.to_hex(tx_hash)
        if int(receipt["status"]) != 1:
            raise ChainError(f"setTokenURI({token_id}) reverted in {tx_hex}.")
        return tx_hex
