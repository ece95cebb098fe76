"""Payment and refund notifications: parsing, signature checks and decryption."""

from __future__ import annotations

import base64
import binascii
import hashlib
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, fields
from typing import Any, TypeVar

from .config import Config
from .crypto import CryptoError, aes_ecb_decrypt, calculate_sign
from .errors import PayError
from .http import marshal_xml

_INT = re.compile(r"[+-]?\d+")
_T = TypeVar("_T")


def _tag(name: str, kind: type = str) -> Any:
    return field(default=None, metadata={"xml": name, "kind": kind})


def _parse_xml(cls: type[_T], data: bytes | str) -> _T:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise PayError(f"xml Unmarshal Error, err={exc}") from exc
    texts = {child.tag: child.text or "" for child in root}
    values: dict[str, Any] = {}
    for spec in fields(cls):
        tag = spec.metadata["xml"]
        if tag not in texts:
            continue
        text = texts[tag]
        if spec.metadata["kind"] is int:
            stripped = text.strip()
            if not stripped:
                values[spec.name] = 0
            elif _INT.fullmatch(stripped):
                values[spec.name] = int(stripped)
            else:
                raise PayError(f"xml Unmarshal Error, field {tag}: invalid integer {text!r}")
        else:
            values[spec.name] = text
    return cls(**values)


@dataclass
class PaidResult:
    """The payment result sent to the notify URL (also returned by an order query)."""

    return_code: str | None = _tag("return_code")
    return_msg: str | None = _tag("return_msg")
    app_id: str | None = _tag("appid")
    mch_id: str | None = _tag("mch_id")
    device_info: str | None = _tag("device_info")
    nonce_str: str | None = _tag("nonce_str")
    sign: str | None = _tag("sign")
    sign_type: str | None = _tag("sign_type")
    result_code: str | None = _tag("result_code")
    err_code: str | None = _tag("err_code")
    err_code_des: str | None = _tag("err_code_des")
    open_id: str | None = _tag("openid")
    is_subscribe: str | None = _tag("is_subscribe")
    trade_type: str | None = _tag("trade_type")
    trade_state: str | None = _tag("trade_state")
    bank_type: str | None = _tag("bank_type")
    total_fee: int | None = _tag("total_fee", int)
    settlement_total_fee: int | None = _tag("settlement_total_fee", int)
    fee_type: str | None = _tag("fee_type")
    cash_fee: str | None = _tag("cash_fee")
    cash_fee_type: str | None = _tag("cash_fee_type")
    coupon_fee: int | None = _tag("coupon_fee", int)
    coupon_count: int | None = _tag("coupon_count", int)
    coupon_type_0: str | None = _tag("coupon_type_0")
    coupon_type_1: str | None = _tag("coupon_type_1")
    coupon_type_2: str | None = _tag("coupon_type_2")
    coupon_id_0: str | None = _tag("coupon_id_0")
    coupon_id_1: str | None = _tag("coupon_id_1")
    coupon_id_2: str | None = _tag("coupon_id_2")
    coupon_fee_0: str | None = _tag("coupon_fee_0")
    coupon_fee_1: str | None = _tag("coupon_fee_1")
    coupon_fee_2: str | None = _tag("coupon_fee_2")
    transaction_id: str | None = _tag("transaction_id")
    out_trade_no: str | None = _tag("out_trade_no")
    attach: str | None = _tag("attach")
    time_end: str | None = _tag("time_end")


@dataclass
class RefundedResult:
    """The refund notification; ``req_info`` holds the encrypted details."""

    return_code: str | None = _tag("return_code")
    return_msg: str | None = _tag("return_msg")
    app_id: str | None = _tag("appid")
    mch_id: str | None = _tag("mch_id")
    nonce_str: str | None = _tag("nonce_str")
    req_info: str | None = _tag("req_info")


@dataclass
class RefundedReqInfo:
    """The decrypted details of a refund notification."""

    transaction_id: str | None = _tag("transaction_id")
    out_trade_no: str | None = _tag("out_trade_no")
    refund_id: str | None = _tag("refund_id")
    out_refund_no: str | None = _tag("out_refund_no")
    total_fee: int | None = _tag("total_fee", int)
    settlement_total_fee: int | None = _tag("settlement_total_fee", int)
    refund_fee: int | None = _tag("refund_fee", int)
    settlement_refund_fee: int | None = _tag("settlement_refund_fee", int)
    refund_status: str | None = _tag("refund_status")
    success_time: str | None = _tag("success_time")
    refund_recv_account: str | None = _tag("refund_recv_accout")
    refund_account: str | None = _tag("refund_account")
    refund_request_source: str | None = _tag("refund_request_source")


@dataclass(frozen=True)
class NotifyResponse:
    """The answer a merchant returns to a notification."""

    return_code: str
    return_msg: str = ""

    def to_xml(self) -> bytes:
        """The answer as an XML document."""
        return marshal_xml({"return_code": self.return_code, "return_msg": self.return_msg})


def parse_paid_result(data: bytes | str) -> PaidResult:
    """Parse a payment notification XML document."""
    return _parse_xml(PaidResult, data)


def parse_refunded_result(data: bytes | str) -> RefundedResult:
    """Parse a refund notification XML document."""
    return _parse_xml(RefundedResult, data)


@dataclass
class Notify:
    """Handles notifications for one merchant account."""

    config: Config

    def paid_verify_sign(self, result: PaidResult) -> bool:
        """Check the signature of a payment result against the merchant key."""
        if result.sign is None:
            return False
        pairs = []
        for spec in sorted(fields(result), key=lambda item: item.metadata["xml"]):
            tag = spec.metadata["xml"]
            value = getattr(result, spec.name)
            text = "" if value is None else str(value)
            if text and tag != "sign":
                pairs.append(f"{tag}={text}&")
        content = "".join(pairs) + "key=" + self.config.key
        try:
            sign = calculate_sign(content, result.sign_type or "", self.config.key)
        except CryptoError:
            return False
        return sign == result.sign

    def decrypt_req_info(self, result: RefundedResult | None) -> RefundedReqInfo:
        """Decrypt the ``req_info`` of a refund notification."""
        if result is None or result.req_info is None:
            raise PayError("empty refunded_result or req_info")
        encoded = result.req_info.replace("\r", "").replace("\n", "")
        try:
            encrypted = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CryptoError(f"invalid base64 data: {exc}") from exc
        aes_key = hashlib.md5(self.config.key.encode("utf-8")).hexdigest().encode("ascii")
        return _parse_xml(RefundedReqInfo, aes_ecb_decrypt(encrypted, aes_key))