"""Raw transaction and block header deserialization."""

import hashlib
from typing import List, Tuple

from bitvia_api.models.blockchain import BlockHeader, RawTransaction, TxInput, TxOutput

HEADER_SIZE = 80


class TxDecodeError(Exception):
    """Raw bytes do not form a valid transaction or header."""
    pass


def decode_varint(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Read a CompactSize integer, returning (value, new_offset)."""
    if offset >= len(data):
        raise TxDecodeError("Varint decoded past end")
    prefix = data[offset]
    offset += 1
    if prefix < 0xfd:
        return prefix, offset
    width = {0xfd: 2, 0xfe: 4, 0xff: 8}[prefix]
    if offset + width > len(data):
        raise TxDecodeError("Varint truncated")
    return int.from_bytes(data[offset:offset + width], "little"), offset + width


def _read(data: bytes, offset: int, length: int, what: str) -> Tuple[bytes, int]:
    if offset + length > len(data):
        raise TxDecodeError(f"Truncated {what}")
    return data[offset:offset + length], offset + length


def parse_transaction(raw: bytes, txid: str = "") -> RawTransaction:
    """Deserialize a legacy or segwit transaction."""
    offset = 0
    version_bytes, offset = _read(raw, offset, 4, "version")
    version = int.from_bytes(version_bytes, "little", signed=True)

    segwit = len(raw) > offset + 1 and raw[offset] == 0x00 and raw[offset + 1] == 0x01
    if segwit:
        offset += 2

    in_count, offset = decode_varint(raw, offset)
    inputs: List[TxInput] = []
    for _ in range(in_count):
        prev, offset = _read(raw, offset, 32, "input outpoint")
        vout_bytes, offset = _read(raw, offset, 4, "input index")
        script_len, offset = decode_varint(raw, offset)
        script_sig, offset = _read(raw, offset, script_len, "scriptSig")
        sequence_bytes, offset = _read(raw, offset, 4, "sequence")
        inputs.append(TxInput(
            prev_txid=prev[::-1].hex(),
            prev_vout=int.from_bytes(vout_bytes, "little"),
            script_sig=script_sig,
            sequence=int.from_bytes(sequence_bytes, "little"),
        ))

    out_count, offset = decode_varint(raw, offset)
    outputs: List[TxOutput] = []
    for _ in range(out_count):
        value_bytes, offset = _read(raw, offset, 8, "output value")
        script_len, offset = decode_varint(raw, offset)
        script_pubkey, offset = _read(raw, offset, script_len, "scriptPubKey")
        outputs.append(TxOutput(value=int.from_bytes(value_bytes, "little"), script_pubkey=script_pubkey))

    witness_start = offset
    if segwit:
        for _ in range(in_count):
            items, offset = decode_varint(raw, offset)
            for _ in range(items):
                item_len, offset = decode_varint(raw, offset)
                _, offset = _read(raw, offset, item_len, "witness item")
    witness_size = offset - witness_start

    lock_bytes, offset = _read(raw, offset, 4, "locktime")
    if offset != len(raw):
        raise TxDecodeError("Trailing data in transaction")

    # Marker and flag bytes count as witness data
    if segwit:
        witness_size += 2
    base_size = len(raw) - witness_size

    if not txid:
        stripped = raw if not segwit else _strip_witness(raw, witness_start, witness_size - 2)
        txid = hashlib.sha256(hashlib.sha256(stripped).digest()).digest()[::-1].hex()

    return RawTransaction(
        txid=txid,
        version=version,
        inputs=inputs,
        outputs=outputs,
        lock_time=int.from_bytes(lock_bytes, "little"),
        size=len(raw),
        weight=base_size * 3 + len(raw),
    )


def _strip_witness(raw: bytes, witness_start: int, witness_len: int) -> bytes:
    """Legacy serialization of a segwit transaction (no marker, flag or witnesses)."""
    return raw[:4] + raw[6:witness_start] + raw[witness_start + witness_len:]


def parse_transaction_hex(raw_hex: str, txid: str = "") -> RawTransaction:
    """Deserialize a transaction from hex."""
    try:
        raw = bytes.fromhex(raw_hex)
    except (TypeError, ValueError) as e:
        raise TxDecodeError("Transaction is not valid hex") from e
    return parse_transaction(raw, txid)


def parse_block_header(raw: bytes) -> BlockHeader:
    """Deserialize an 80-byte block header."""
    if len(raw) != HEADER_SIZE:
        raise TxDecodeError(f"Block header must be {HEADER_SIZE} bytes, got {len(raw)}")
    return BlockHeader(
        version=int.from_bytes(raw[0:4], "little", signed=True),
        prev_hash=raw[4:36][::-1].hex(),
        merkle_root=raw[36:68][::-1].hex(),
        timestamp=int.from_bytes(raw[68:72], "little"),
        bits=int.from_bytes(raw[72:76], "little"),
        nonce=int.from_bytes(raw[76:80], "little"),
    )


def parse_block_header_hex(header_hex: str) -> BlockHeader:
    """Deserialize a block header from hex."""
    try:
        raw = bytes.fromhex(header_hex)
    except (TypeError, ValueError) as e:
        raise TxDecodeError("Block header is not valid hex") from e
    return parse_block_header(raw)
