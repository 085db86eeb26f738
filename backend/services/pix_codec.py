"""
PIX payment-code codec — builds the BR Code (EMV merchant-presented) payload.

Pure and stateless: the same merchant, amount and transaction id always
produce the same string. Every field is written as TLV:

    tag (2 digits) + length (2 digits, zero-padded) + value

Top-level layout:

    00 payload format indicator   "01"
    26 merchant account info      { 00 gui, 01 key, 02 description? }
    52 merchant category code     "0000"
    53 transaction currency       "986"
    54 transaction amount         "25.50"
    58 country code               "BR"
    59 merchant name              ≤ 25 chars
    60 merchant city              ≤ 15 chars
    62 additional data            { 05 transaction id ≤ 25 chars }
    63 CRC16-CCITT                "6304" + 4 uppercase hex digits

The checksum covers the UTF-8 bytes of everything before it, including
the "6304" header. Overlong names, cities and transaction ids are truncated,
never rejected.
"""
import re
import unicodedata
from dataclasses import dataclass
from decimal import Decimal

from domain.constants import (
    PIX_PAYLOAD_FORMAT,
    PIX_GUI,
    PIX_MERCHANT_CATEGORY,
    PIX_CURRENCY_BRL,
    PIX_COUNTRY,
    PIX_MAX_NAME,
    PIX_MAX_CITY,
    PIX_MAX_TXID,
    PIX_MAX_AMOUNT_LEN,
)
from domain.errors import InvalidPaymentInput
from utils.validators import to_cents

# Field tags
TAG_PAYLOAD_FORMAT = "00"
TAG_MERCHANT_ACCOUNT = "26"
TAG_MERCHANT_CATEGORY = "52"
TAG_CURRENCY = "53"
TAG_AMOUNT = "54"
TAG_COUNTRY = "58"
TAG_MERCHANT_NAME = "59"
TAG_MERCHANT_CITY = "60"
TAG_ADDITIONAL_DATA = "62"
TAG_CRC = "63"

# Nested tags
SUBTAG_GUI = "00"
SUBTAG_KEY = "01"
SUBTAG_DESCRIPTION = "02"
SUBTAG_TXID = "05"

CRC_HEADER = TAG_CRC + "04"
MIN_AMOUNT = Decimal("0.01")
_MAX_TLV_VALUE = 99

_TXID_RE = re.compile(r"^[A-Za-z0-9]+$")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class MerchantConfig:
    """Merchant identity, built once at startup and passed to encode()."""
    key: str
    name: str
    city: str
    description: str | None = None


# ── Primitives ──────────────────────────────────────────────────────

def crc16_ccitt(data: bytes, crc: int = 0xFFFF) -> int:
    """CRC-16/CCITT-FALSE: poly 0x1021, init 0xFFFF, no reflection, no final xor."""
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


def tlv(tag: str, value: str) -> str:
    """Encode one field. Values longer than 99 chars cannot be represented."""
    if len(value) > _MAX_TLV_VALUE:
        raise InvalidPaymentInput(
            f"Field {tag} is {len(value)} characters long (max {_MAX_TLV_VALUE})",
            details={"tag": tag},
        )
    return f"{tag}{len(value):02d}{value}"


def ascii_fold(text: str) -> str:
    """Strip accents and collapse whitespace so char length == byte length."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    folded = decomposed.encode("ascii", "ignore").decode("ascii")
    return _WHITESPACE_RE.sub(" ", folded).strip()


def parse_amount(value) -> Decimal:
    """
    Coerce a number or numeric string ("25,50" accepted) into a Decimal
    rounded half-up to cents.
    """
    try:
        return to_cents(value)
    except ValueError:
        raise InvalidPaymentInput("Amount must be numeric", details={"amount": str(value)})


def format_amount(amount: Decimal) -> str:
    """Two fractional digits, "." as decimal mark, no grouping."""
    return f"{amount:.2f}"


# ── Encoder ─────────────────────────────────────────────────────────

def _merchant_account(merchant: MerchantConfig) -> str:
    key = _WHITESPACE_RE.sub("", merchant.key or "")
    if not key:
        raise InvalidPaymentInput("Merchant key is empty")

    group = tlv(SUBTAG_GUI, PIX_GUI) + tlv(SUBTAG_KEY, key)
    description = ascii_fold(merchant.description or "")
    if description:
        group += tlv(SUBTAG_DESCRIPTION, description)
    return tlv(TAG_MERCHANT_ACCOUNT, group)


def _truncated(text: str, limit: int, field: str) -> str:
    value = ascii_fold(text)[:limit].rstrip()
    if not value:
        raise InvalidPaymentInput(f"{field} is empty")
    return value


def normalize_transaction_id(transaction_id: str) -> str:
    txid = (transaction_id or "").strip()[:PIX_MAX_TXID]
    if not txid or not _TXID_RE.match(txid):
        raise InvalidPaymentInput(
            "Transaction id must be 1-25 alphanumeric characters",
            details={"transaction_id": transaction_id},
        )
    return txid


def encode(merchant: MerchantConfig, amount, transaction_id: str) -> str:
    """
    Build the complete PIX payload, checksum included.

    Raises:
        InvalidPaymentInput: amount below 0.01, empty merchant key/name/city,
            non-alphanumeric transaction id, or a field too long for TLV.
    """
    value = parse_amount(amount)
    if value < MIN_AMOUNT:
        raise InvalidPaymentInput(
            f"Amount must be at least {MIN_AMOUNT}", details={"amount": str(value)}
        )
    amount_text = format_amount(value)
    if len(amount_text) > PIX_MAX_AMOUNT_LEN:
        raise InvalidPaymentInput("Amount too large", details={"amount": amount_text})

    txid = normalize_transaction_id(transaction_id)

    body = (
        tlv(TAG_PAYLOAD_FORMAT, PIX_PAYLOAD_FORMAT)
        + _merchant_account(merchant)
        + tlv(TAG_MERCHANT_CATEGORY, PIX_MERCHANT_CATEGORY)
        + tlv(TAG_CURRENCY, PIX_CURRENCY_BRL)
        + tlv(TAG_AMOUNT, amount_text)
        + tlv(TAG_COUNTRY, PIX_COUNTRY)
        + tlv(TAG_MERCHANT_NAME, _truncated(merchant.name, PIX_MAX_NAME, "Merchant name"))
        + tlv(TAG_MERCHANT_CITY, _truncated(merchant.city, PIX_MAX_CITY, "Merchant city"))
        + tlv(TAG_ADDITIONAL_DATA, tlv(SUBTAG_TXID, txid))
        + CRC_HEADER
    )
    return body + f"{crc16_ccitt(body.encode('utf-8')):04X}"


# ── Decoding / validation ───────────────────────────────────────────

def parse_tlv(text: str) -> dict[str, str]:
    """Split a flat TLV string into {tag: value}. Nested groups stay encoded."""
    fields: dict[str, str] = {}
    pos = 0
    while pos < len(text):
        header = text[pos:pos + 4]
        if len(header) < 4 or not header.isdigit():
            raise ValueError(f"Malformed TLV header at offset {pos}")
        length = int(header[2:])
        value = text[pos + 4:pos + 4 + length]
        if len(value) != length:
            raise ValueError(f"Truncated TLV value for tag {header[:2]}")
        fields[header[:2]] = value
        pos += 4 + length
    return fields


def is_valid_payload(payload: str) -> bool:
    """Structural check: format indicator prefix and a matching checksum."""
    if not payload.startswith(TAG_PAYLOAD_FORMAT + "02" + PIX_PAYLOAD_FORMAT):
        return False
    body, checksum = payload[:-4], payload[-4:]
    if not body.endswith(CRC_HEADER):
        return False
    return f"{crc16_ccitt(body.encode('utf-8')):04X}" == checksum
