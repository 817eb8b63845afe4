"""Selects and normalizes the transactions of a block that touch the watched address."""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from walletsync.domain.models.block import Block
from walletsync.domain.models.transaction import TransactionRecord
from walletsync.exceptions import DecodingError, MalformedHex
from walletsync.infra.blockchain.evm.hex_codec import decode_decimal, decode_int

logger = logging.getLogger(__name__)


def _normalize(address: Optional[str]) -> Optional[str]:
    return address.lower() if isinstance(address, str) else None


class TransactionFilter:
    def __init__(self, address: str) -> None:
        self._address = address.lower()

    @property
    def address(self) -> str:
        return self._address

    def is_relevant(self, raw_tx: dict[str, Any]) -> bool:
        return self._address in (_normalize(raw_tx.get("from")), _normalize(raw_tx.get("to")))

    def filter_block(self, block: Block) -> list[TransactionRecord]:
        """Relevant transactions of ``block`` in block order.

        A transaction with an undecodable field is dropped so that one bad
        record cannot stall sync. An undecodable block timestamp fails the block.
        """
        try:
            timestamp = decode_int(block.timestamp)
        except MalformedHex as e:
            raise DecodingError(f"Block {block.number} has invalid timestamp {block.timestamp!r}") from e

        records = []
        for position, raw_tx in enumerate(block.transactions):
            if not isinstance(raw_tx, dict) or not self.is_relevant(raw_tx):
                continue
            try:
                records.append(self._build_record(raw_tx, block, timestamp))
            except (MalformedHex, KeyError, TypeError, ValidationError) as e:
                logger.debug(
                    "Skipping undecodable transaction #%d in block %d (%s): %s",
                    position, block.number, raw_tx.get("hash"), e,
                )
        return records

    @staticmethod
    def _build_record(raw_tx: dict[str, Any], block: Block, timestamp: int) -> TransactionRecord:
        return TransactionRecord(
            hash=raw_tx["hash"],
            nonce=decode_int(raw_tx["nonce"]),
            input=raw_tx.get("input") or "0x",
            from_address=_normalize(raw_tx["from"]),
            to_address=_normalize(raw_tx.get("to")),
            value=decode_decimal(raw_tx["value"]),
            gas_limit=decode_int(raw_tx["gas"]),
            gas_price=decode_int(raw_tx["gasPrice"]),
            timestamp=timestamp,
            contract_address=None,
            block_hash=raw_tx.get("blockHash") or block.hash,
            block_number=block.number,
            transaction_index=decode_int(raw_tx["transactionIndex"]),
        )
