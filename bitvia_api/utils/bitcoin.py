"""Bitcoin-specific utility functions."""

import hashlib
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

import base58
from bip_utils import Bech32ChecksumError, SegwitBech32Decoder, SegwitBech32Encoder
import structlog

from bitvia_api.core.errors import ValidationError

logger = structlog.get_logger(__name__)

# Satoshis per Bitcoin
SATOSHIS_PER_BTC = 100_000_000

# Rendered in place of an address for scripts without a standard encoding
NO_ADDRESS = "(no address)"

# Mainnet parameters
P2PKH_VERSION = 0x00
P2SH_VERSION = 0x05
BECH32_HRP = "bc"

TXID_PATTERN = re.compile(r'^[0-9a-fA-F]{64}$')


def sats_to_btc(satoshis: int) -> float:
    """Convert satoshis to BTC."""
    return satoshis / SATOSHIS_PER_BTC


def btc_to_satoshi(btc: Union[int, float, str, Decimal]) -> int:
    """Convert a node-reported BTC amount to satoshis."""
    try:
        amount = Decimal(str(btc))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"invalid amount {btc!r}") from e
    if not amount.is_finite():
        raise ValidationError(f"invalid amount {btc!r}")
    return int((amount * SATOSHIS_PER_BTC).to_integral_value())


def vout_value_sats(vout: Dict[str, Any]) -> int:
    """Value of a decoded node output in satoshis; malformed values count as 0."""
    value = vout.get('value') if isinstance(vout, dict) else None
    if value is None or isinstance(value, bool):
        return 0
    try:
        return btc_to_satoshi(value)
    except ValidationError:
        logger.warning("Malformed output value", value=value)
        return 0


def is_valid_txid(txid: Any) -> bool:
    """Check a txid is 64 hex characters."""
    return isinstance(txid, str) and bool(TXID_PATTERN.match(txid))


def tx_is_coinbase(tx: Dict[str, Any]) -> bool:
    """Check whether a node-decoded transaction is a coinbase."""
    vin = tx.get('vin') or []
    if not vin:
        return False
    return 'coinbase' in vin[0]


def _is_p2pkh(script: bytes) -> bool:
    # OP_DUP OP_HASH160 <20 bytes> OP_EQUALVERIFY OP_CHECKSIG
    return (len(script) == 25 and script[:3] == b"\x76\xa9\x14" and
            script[23:] == b"\x88\xac")


def _is_p2sh(script: bytes) -> bool:
    # OP_HASH160 <20 bytes> OP_EQUAL
    return len(script) == 23 and script[:2] == b"\xa9\x14" and script[22] == 0x87


def _witness_program(script: bytes) -> Optional[tuple]:
    """Split a segwit output script into (version, program), or None."""
    if len(script) < 4 or len(script) > 42:
        return None
    if script[0] != 0x00 and not 0x51 <= script[0] <= 0x60:
        return None
    if script[1] != len(script) - 2:
        return None
    version = 0 if script[0] == 0x00 else script[0] - 0x50
    program = script[2:]
    if version == 0 and len(program) not in (20, 32):
        return None
    return version, program


def script_to_address(script: bytes) -> Optional[str]:
    """Render an output script as a mainnet address, or None if it has no standard form."""
    if _is_p2pkh(script):
        return base58.b58encode_check(bytes([P2PKH_VERSION]) + script[3:23]).decode('ascii')

    if _is_p2sh(script):
        return base58.b58encode_check(bytes([P2SH_VERSION]) + script[2:22]).decode('ascii')

    witness = _witness_program(script)
    if witness is not None:
        version, program = witness
        return SegwitBech32Encoder.Encode(BECH32_HRP, version, program)

    return None


def render_address(script: bytes) -> str:
    """Best-effort address for display, falling back to the no-address sentinel."""
    return script_to_address(script) or NO_ADDRESS


def address_to_script(address: str) -> bytes:
    """Parse a mainnet address and return its output script."""
    if not address or not isinstance(address, str):
        raise ValidationError("empty address")

    if address[:3].lower() == BECH32_HRP + "1":
        try:
            version, program = SegwitBech32Decoder.Decode(BECH32_HRP, address)
        except (Bech32ChecksumError, ValueError) as e:
            raise ValidationError(f"invalid bech32 address: {address}") from e
        op_version = 0x00 if version == 0 else 0x50 + version
        return bytes([op_version, len(program)]) + bytes(program)

    try:
        payload = base58.b58decode_check(address)
    except ValueError as e:
        raise ValidationError(f"invalid base58 address: {address}") from e

    if len(payload) != 21:
        raise ValidationError(f"invalid address length: {address}")

    version, hash160 = payload[0], payload[1:]
    if version == P2PKH_VERSION:
        return bytes([0x76, 0xa9, 0x14]) + hash160 + bytes([0x88, 0xac])
    if version == P2SH_VERSION:
        return bytes([0xa9, 0x14]) + hash160 + bytes([0x87])

    raise ValidationError(f"address is not a mainnet address: {address}")


def script_hash(script: bytes) -> str:
    """Electrum script hash: sha256 of the script, byte-reversed, hex encoded."""
    return hashlib.sha256(script).digest()[::-1].hex()


def node_vout_address(vout: Dict[str, Any]) -> str:
    """Address from a node-decoded output's scriptPubKey description."""
    spk = vout.get('scriptPubKey') or {}
    address = spk.get('address')
    if address:
        return address
    addresses = spk.get('addresses') or []
    if addresses:
        return addresses[0]
    return NO_ADDRESS
