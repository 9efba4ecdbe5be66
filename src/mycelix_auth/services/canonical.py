"""Canonical message construction for signed API requests.

Every signed operation is serialized into exactly one of two forms before its
signature is checked:

* a legacy ``|``-delimited string signed as a personal message (EIP-191)::

      mycelix-song|<id>|<artistAddress>|<ipfsHash>|<paymentModel>|<nonce>|<timestamp>

* an EIP-712 typed-data structure bound to the deployment's domain separator.

Both forms are pure functions of the operation's domain fields, nonce and
timestamp. Field order is fixed per operation and the timestamp is always last.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from mycelix_auth.core.security import is_valid_address

LEGACY_DELIMITER = "|"


class CanonicalizationError(ValueError):
    """Raised when request fields cannot be serialized unambiguously."""


class OperationKind(str, Enum):
    """Signed operation types accepted by the API."""

    SONG = "song"
    PLAY = "play"
    CLAIM = "claim"


class SigningMethod(str, Enum):
    """Signature schemes a caller may select with the ``method`` field."""

    LEGACY = "legacy"
    EIP712 = "eip712"

    @classmethod
    def parse(cls, raw: str | None) -> SigningMethod:
        """Map the wire value onto a signing method; ``eip191`` is a legacy alias."""
        value = (raw or cls.LEGACY.value).strip().lower()
        if value in ("legacy", "eip191", "personal_sign"):
            return cls.LEGACY
        if value == "eip712":
            return cls.EIP712
        raise CanonicalizationError(f"Unsupported signing method: {raw!r}")


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: str


@dataclass(frozen=True)
class OperationSchema:
    """Ordered field layout for one operation kind."""

    kind: OperationKind
    tag: str
    primary_type: str
    fields: tuple[FieldSpec, ...]

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)

    def typed_fields(self) -> list[dict[str, str]]:
        """Return the EIP-712 field list, including the trailing nonce and timestamp."""
        specs = [*self.fields, FieldSpec("nonce", "string"), FieldSpec("timestamp", "uint256")]
        return [{"name": spec.name, "type": spec.type} for spec in specs]


OPERATION_SCHEMAS: dict[OperationKind, OperationSchema] = {
    OperationKind.SONG: OperationSchema(
        kind=OperationKind.SONG,
        tag="mycelix-song",
        primary_type="Song",
        fields=(
            FieldSpec("id", "string"),
            FieldSpec("artistAddress", "address"),
            FieldSpec("ipfsHash", "string"),
            FieldSpec("paymentModel", "string"),
        ),
    ),
    OperationKind.PLAY: OperationSchema(
        kind=OperationKind.PLAY,
        tag="mycelix-play",
        primary_type="Play",
        fields=(
            FieldSpec("songId", "string"),
            FieldSpec("listener", "address"),
            FieldSpec("amount", "string"),
            FieldSpec("paymentType", "string"),
        ),
    ),
    OperationKind.CLAIM: OperationSchema(
        kind=OperationKind.CLAIM,
        tag="mycelix-claim",
        primary_type="Claim",
        fields=(
            FieldSpec("songId", "string"),
            FieldSpec("artistAddress", "address"),
            FieldSpec("ipfsHash", "string"),
            FieldSpec("title", "string"),
        ),
    ),
}


@dataclass(frozen=True)
class TypedDataDomain:
    """EIP-712 domain separator inputs, fixed per deployment."""

    name: str
    version: str
    chain_id: int
    verifying_contract: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract.lower(),
        }


@dataclass(frozen=True)
class LegacyMessage:
    """Delimited personal-message form."""

    text: str

    def encode(self) -> bytes:
        return self.text.encode("utf-8")


@dataclass(frozen=True)
class TypedMessage:
    """Typed-data form: domain, ordered schema and values."""

    domain: TypedDataDomain
    primary_type: str
    fields: tuple[dict[str, str], ...]
    values: Mapping[str, Any] = field(default_factory=dict)

    def as_eip712(self) -> dict[str, Any]:
        """Return the full EIP-712 message accepted by ``eth_account``."""
        return {
            "types": {
                "EIP712Domain": [
                    {"name": "name", "type": "string"},
                    {"name": "version", "type": "string"},
                    {"name": "chainId", "type": "uint256"},
                    {"name": "verifyingContract", "type": "address"},
                ],
                self.primary_type: [dict(spec) for spec in self.fields],
            },
            "primaryType": self.primary_type,
            "domain": self.domain.as_dict(),
            "message": dict(self.values),
        }


CanonicalMessage = LegacyMessage | TypedMessage


def field_text(value: object) -> str:
    """Render a domain field the way signing clients stringify it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return js_number_text(value)
    return str(value)


def js_number_text(value: float) -> str:
    """Format a float like JavaScript's ``Number.prototype.toString``.

    Both use the shortest round-tripping digits; they differ only in where
    exponent notation starts and how the exponent is written.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    parsed = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(str(digit) for digit in parsed.digits)
    k = len(digits)
    n = int(parsed.exponent) + k  # decimal point position

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        text = "0." + "0" * -n + digits
    else:
        exponent = n - 1
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        exponent_sign = "+" if exponent >= 0 else "-"
        text = f"{mantissa}e{exponent_sign}{abs(exponent)}"
    return sign + text


def _timestamp(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise CanonicalizationError("timestamp must be an integer number of milliseconds")
    return value


def legacy_message(
    kind: OperationKind,
    fields: Mapping[str, object],
    timestamp: int,
    nonce: str | None = None,
) -> LegacyMessage:
    """Build the ``|``-joined personal message for an operation.

    Raises:
        CanonicalizationError: If a field contains the delimiter, which would make
            the serialization ambiguous.
    """
    schema = OPERATION_SCHEMAS[kind]
    parts = [field_text(fields.get(name)) for name in schema.field_names]
    parts.append(field_text(nonce))
    for name, part in zip((*schema.field_names, "nonce"), parts, strict=True):
        if LEGACY_DELIMITER in part:
            raise CanonicalizationError(f"{name} must not contain {LEGACY_DELIMITER!r}")
    segments = [schema.tag, *parts, str(_timestamp(timestamp))]
    return LegacyMessage(LEGACY_DELIMITER.join(segments))


def typed_message(
    kind: OperationKind,
    fields: Mapping[str, object],
    timestamp: int,
    nonce: str | None,
    domain: TypedDataDomain,
) -> TypedMessage:
    """Build the EIP-712 structure for an operation."""
    if not nonce:
        raise CanonicalizationError("nonce is required for eip712 signatures")
    schema = OPERATION_SCHEMAS[kind]
    values: dict[str, Any] = {}
    for spec in schema.fields:
        text = field_text(fields.get(spec.name))
        if spec.type == "address":
            if not is_valid_address(text):
                raise CanonicalizationError(f"{spec.name} must be a 0x-prefixed address")
            text = text.lower()
        values[spec.name] = text
    values["nonce"] = nonce
    values["timestamp"] = _timestamp(timestamp)
    return TypedMessage(
        domain=domain,
        primary_type=schema.primary_type,
        fields=tuple(schema.typed_fields()),
        values=values,
    )


def canonicalize(
    kind: OperationKind,
    fields: Mapping[str, object],
    timestamp: int,
    *,
    method: SigningMethod = SigningMethod.LEGACY,
    nonce: str | None = None,
    domain: TypedDataDomain | None = None,
) -> CanonicalMessage:
    """Serialize an operation into the canonical form selected by `method`."""
    if method is SigningMethod.EIP712:
        if domain is None:
            raise CanonicalizationError("eip712 signatures require a verifying contract")
        return typed_message(kind, fields, timestamp, nonce, domain)
    return legacy_message(kind, fields, timestamp, nonce)
