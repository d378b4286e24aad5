"""
Operator Signature Verification
===============================

An attestation binds an operator to the stored fields of one event:

    digest  = keccak256(location ‖ uint8(type code) ‖ uint256(severity) ‖ uint256(report block))
    message = keccak256("\\x19Ethereum Signed Message:\\n32" ‖ digest)

`message` is the EIP-191 signed-message hash an on-chain verifier checks.
Verifiers are pluggable: the registry only asks "did this operator sign
this message?".

Eip191SignatureVerifier recovers the signer address from a 65-byte
secp256k1 signature and compares it with the operator's registered address.
HmacSignatureVerifier checks HMAC-SHA256 tags against per-operator secrets
held in an OperatorRegistry, for deployments without operator keys.
AcceptAllVerifier is for tests and local demos.
"""

import hashlib
import hmac
import logging
import threading
from typing import Dict, Optional

from Crypto.Hash import keccak
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import is_address, to_checksum_address

from .models import DisasterEvent, DisasterType

logger = logging.getLogger(__name__)

SIGNED_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"


def keccak256(data: bytes) -> bytes:
    """Ethereum's Keccak-256 (not NIST SHA3-256)."""
    return keccak.new(digest_bits=256, data=data).digest()


def _uint256(value: int) -> bytes:
    if value < 0:
        raise ValueError("uint256 fields must be non-negative")
    return value.to_bytes(32, 'big')


def encode_event_message(location: str,
                         disaster_type: DisasterType,
                         severity: int,
                         report_block: int) -> bytes:
    """Packed canonical encoding of the attested event fields."""
    return (
        location.encode('utf-8')
        + disaster_type.code.to_bytes(1, 'big')
        + _uint256(severity)
        + _uint256(report_block)
    )


def event_digest(location: str,
                 disaster_type: DisasterType,
                 severity: int,
                 report_block: int) -> bytes:
    return keccak256(encode_event_message(location, disaster_type, severity, report_block))


def to_signed_message_hash(digest: bytes) -> bytes:
    """Wrap a 32-byte digest with the signed-message prefix."""
    if len(digest) != 32:
        raise ValueError("digest must be 32 bytes")
    return keccak256(SIGNED_MESSAGE_PREFIX + digest)


def attestation_digest(event: DisasterEvent) -> bytes:
    return event_digest(event.location, event.disaster_type, event.severity, event.report_block)


def attestation_message_hash(event: DisasterEvent) -> bytes:
    """Message hash an operator must sign to attest `event`."""
    return to_signed_message_hash(attestation_digest(event))


# ==========================================
# Verifiers
# ==========================================

class SignatureVerifier:
    """Capability interface: decide whether `operator` signed `message_hash`."""

    def is_valid_signature(self, operator: str, message_hash: bytes, signature: bytes) -> bool:
        raise NotImplementedError


class AcceptAllVerifier(SignatureVerifier):
    """Treats every signature as valid. Never use outside tests and demos."""

    def is_valid_signature(self, operator: str, message_hash: bytes, signature: bytes) -> bool:
        return True


def sign_eip191(private_key, digest: bytes) -> bytes:
    """65-byte signature over the EIP-191 wrapping of `digest`, as an operator wallet signs it."""
    signed = Account.sign_message(encode_defunct(primitive=digest), private_key=private_key)
    return bytes(signed.signature)


class Eip191SignatureVerifier(SignatureVerifier):
    """
    Operators are registered with an Ethereum address; a signature is valid
    when the address recovered from it matches.
    """

    def __init__(self, operators: Optional[Dict[str, str]] = None):
        self._addresses: Dict[str, str] = {}
        self._lock = threading.Lock()
        for operator, address in (operators or {}).items():
            self.register(operator, address)

    def register(self, operator: str, address: str) -> None:
        if not is_address(address):
            raise ValueError(f"Invalid operator address for {operator}: {address!r}")
        with self._lock:
            self._addresses[operator] = to_checksum_address(address)
        logger.info(f"Operator registered: {operator} ({address})")

    def address_for(self, operator: str) -> Optional[str]:
        with self._lock:
            return self._addresses.get(operator)

    def __len__(self) -> int:
        with self._lock:
            return len(self._addresses)

    def is_valid_signature(self, operator: str, message_hash: bytes, signature: bytes) -> bool:
        expected = self.address_for(operator)
        if expected is None:
            logger.warning(f"Signature from unregistered operator rejected: {operator}")
            return False
        try:
            recovered = Account._recover_hash(bytes(message_hash), signature=bytes(signature))
        except Exception as e:
            logger.warning(f"Unrecoverable signature from {operator}: {e}")
            return False
        return recovered == expected


class OperatorRegistry:
    """Registered operators and their HMAC signing secrets."""

    def __init__(self, operators: Optional[Dict[str, bytes]] = None):
        self._secrets: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        for operator, secret in (operators or {}).items():
            self.register(operator, secret)

    def register(self, operator: str, secret: bytes) -> None:
        if not secret:
            raise ValueError("operator secret must not be empty")
        if isinstance(secret, str):
            secret = secret.encode('utf-8')
        with self._lock:
            self._secrets[operator] = bytes(secret)
        logger.info(f"Operator registered: {operator}")

    def is_registered(self, operator: str) -> bool:
        with self._lock:
            return operator in self._secrets

    def secret_for(self, operator: str) -> Optional[bytes]:
        with self._lock:
            return self._secrets.get(operator)

    def __len__(self) -> int:
        with self._lock:
            return len(self._secrets)


def sign_message(secret: bytes, message_hash: bytes) -> bytes:
    """Produce the HMAC-SHA256 tag HmacSignatureVerifier accepts."""
    return hmac.new(secret, message_hash, hashlib.sha256).digest()


class HmacSignatureVerifier(SignatureVerifier):
    """Only registered operators, only with a tag made from their own secret."""

    def __init__(self, registry: OperatorRegistry):
        self.registry = registry

    def is_valid_signature(self, operator: str, message_hash: bytes, signature: bytes) -> bool:
        secret = self.registry.secret_for(operator)
        if secret is None:
            logger.warning(f"Signature from unregistered operator rejected: {operator}")
            return False
        return hmac.compare_digest(sign_message(secret, message_hash), bytes(signature))
