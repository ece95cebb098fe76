"""Refund requests against the merchant API."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, fields
from typing import Any

from .config import Config
from .crypto import SIGN_TYPE_MD5, param_sign
from .errors import PayError
from .helpers import random_str
from .http import marshal_xml, post_xml_with_tls

REFUND_GATEWAY = "https://api.mch.weixin.qq.com/secapi/pay/refund"
SUCCESS = "SUCCESS"


def _tag(name: str) -> Any:
    return field(default="", metadata={"xml": name})


@dataclass
class RefundParams:
    """Parameters of a refund; ``root_ca`` is the path of the merchant's PKCS#12 certificate."""

    transaction_id: str = ""
    out_refund_no: str = ""
    out_trade_no: str = ""
    total_fee: str = ""
    refund_fee: str = ""
    refund_desc: str = ""
    root_ca: str = ""
    notify_url: str = ""
    sign_type: str = ""


@dataclass
class RefundResponse:
    """The answer of the refund API."""

    return_code: str = _tag("return_code")
    return_msg: str = _tag("return_msg")
    app_id: str = _tag("appid")
    mch_id: str = _tag("mch_id")
    nonce_str: str = _tag("nonce_str")
    sign: str = _tag("sign")
    result_code: str = _tag("result_code")
    err_code: str = _tag("err_code")
    err_code_des: str = _tag("err_code_des")
    transaction_id: str = _tag("transaction_id")
    out_trade_no: str = _tag("out_trade_no")
    out_refund_no: str = _tag("out_refund_no")
    refund_id: str = _tag("refund_id")
    refund_fee: str = _tag("refund_fee")
    settlement_refund_fee: str = _tag("settlement_refund_fee")
    total_fee: str = _tag("total_fee")
    settlement_total_fee: str = _tag("settlement_total_fee")
    fee_type: str = _tag("fee_type")
    cash_fee: str = _tag("cash_fee")
    cash_fee_type: str = _tag("cash_fee_type")


def _parse_response(data: bytes) -> RefundResponse:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise PayError(f"xml Unmarshal Error, err={exc}") from exc
    texts = {child.tag: child.text or "" for child in root}
    return RefundResponse(
        **{
            spec.name: texts[spec.metadata["xml"]]
            for spec in fields(RefundResponse)
            if spec.metadata["xml"] in texts
        }
    )


@dataclass
class Refund:
    """Refund API for one merchant account."""

    config: Config

    def sign_params(self, params: RefundParams) -> dict[str, str]:
        """The parameters a refund request is signed over, with a fresh nonce."""
        signed = {
            "appid": self.config.app_id,
            "mch_id": self.config.mch_id,
            "nonce_str": random_str(32),
            "out_refund_no": params.out_refund_no,
            "refund_desc": params.refund_desc,
            "refund_fee": params.refund_fee,
            "total_fee": params.total_fee,
        }
        if not params.sign_type:
            signed["sign_type"] = SIGN_TYPE_MD5
        if params.out_trade_no:
            signed["out_trade_no"] = params.out_trade_no
        if params.transaction_id:
            signed["transaction_id"] = params.transaction_id
        if params.notify_url:
            signed["notify_url"] = params.notify_url
        return signed

    def refund(self, params: RefundParams) -> RefundResponse:
        """Apply for a refund using the merchant's client certificate."""
        signed = self.sign_params(params)
        sign = param_sign(signed, self.config.key)
        request = [
            ("appid", signed["appid"]),
            ("mch_id", signed["mch_id"]),
            ("nonce_str", signed["nonce_str"]),
            ("sign", sign),
            ("sign_type", signed.get("sign_type") or None),
            ("transaction_id", params.transaction_id or None),
            ("out_trade_no", params.out_trade_no or None),
            ("out_refund_no", signed["out_refund_no"]),
            ("total_fee", signed["total_fee"]),
            ("refund_fee", signed["refund_fee"]),
            ("refund_desc", signed["refund_desc"] or None),
            ("notify_url", signed.get("notify_url") or None),
        ]
        raw = post_xml_with_tls(
            REFUND_GATEWAY,
            marshal_xml(request, "request"),
            params.root_ca,
            self.config.mch_id,
        )
        response = _parse_response(raw)
        if response.return_code == SUCCESS:
            if response.result_code == SUCCESS:
                return response
            raise PayError(
                f"refund error, errcode={response.err_code},errmsg={response.err_code_des}"
            )
        text = raw.decode("utf-8", errors="replace")
        raise PayError(f"[msg : xmlUnmarshalError] [rawReturn : {text}] [sign : {sign}]")