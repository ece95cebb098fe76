"""Payments from the merchant account to a user's wallet."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, fields
from typing import Any

from .config import Config
from .crypto import param_sign
from .errors import PayError
from .helpers import random_str
from .http import marshal_xml, post_xml_with_tls

WALLET_TRANSFER_GATEWAY = (
    "https://api.mch.weixin.qq.com/mmpaymkttransfers/promotion/transfers"
)
SUCCESS = "SUCCESS"
NO_CHECK = "NO_CHECK"
FORCE_CHECK = "FORCE_CHECK"


def _tag(name: str) -> Any:
    return field(default="", metadata={"xml": name})


@dataclass
class TransferParams:
    """Parameters of a wallet transfer; ``amount`` is in cents."""

    device_info: str = ""
    partner_trade_no: str = ""
    open_id: str = ""
    check_name: bool = False
    re_user_name: str = ""
    amount: int = 0
    desc: str = ""
    spbill_create_ip: str = ""
    root_ca: str = ""


@dataclass
class TransferResponse:
    """The answer of the wallet transfer API."""

    return_code: str = _tag("return_code")
    return_msg: str = _tag("return_msg")
    app_id: str = _tag("appid")
    mch_id: str = _tag("mch_id")
    device_info: str = _tag("device_info")
    nonce_str: str = _tag("nonce_str")
    result_code: str = _tag("result_code")
    err_code: str = _tag("err_code")
    err_code_des: str = _tag("err_code_des")
    partner_trade_no: str = _tag("partner_trade_no")
    payment_no: str = _tag("payment_no")
    payment_time: str = _tag("payment_time")


def _parse_response(data: bytes) -> TransferResponse:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise PayError(f"xml Unmarshal Error, err={exc}") from exc
    texts = {child.tag: child.text or "" for child in root}
    return TransferResponse(
        **{
            spec.name: texts[spec.metadata["xml"]]
            for spec in fields(TransferResponse)
            if spec.metadata["xml"] in texts
        }
    )


@dataclass
class Transfer:
    """Wallet transfer API for one merchant account."""

    config: Config

    def wallet_transfer(self, params: TransferParams) -> TransferResponse:
        """Pay ``params.amount`` into the wallet of the user ``params.open_id``."""
        nonce_str = random_str(32)
        check_name = FORCE_CHECK if params.check_name else NO_CHECK
        re_user_name = params.re_user_name if params.check_name else ""

        signed = {
            "mch_appid": self.config.app_id,
            "mchid": self.config.mch_id,
            "nonce_str": nonce_str,
            "partner_trade_no": params.partner_trade_no,
            "openid": params.open_id,
            "amount": str(params.amount),
            "desc": params.desc,
            "check_name": check_name,
        }
        if params.device_info:
            signed["device_info"] = params.device_info
        if params.check_name:
            signed["re_user_name"] = re_user_name
        if params.spbill_create_ip:
            signed["spbill_create_ip"] = params.spbill_create_ip
        sign = param_sign(signed, self.config.key)

        request = [
            ("mch_appid", self.config.app_id),
            ("mchid", self.config.mch_id),
            ("nonce_str", nonce_str),
            ("sign", sign),
            ("device_info", params.device_info or None),
            ("partner_trade_no", params.partner_trade_no),
            ("openid", params.open_id),
            ("check_name", check_name),
            ("re_user_name", re_user_name or None),
            ("amount", params.amount),
            ("desc", params.desc),
            ("spbill_create_ip", params.spbill_create_ip or None),
        ]
        raw = post_xml_with_tls(
            WALLET_TRANSFER_GATEWAY,
            marshal_xml(request, "request"),
            params.root_ca,
            self.config.mch_id,
        )
        response = _parse_response(raw)
        if response.return_code == SUCCESS:
            if response.result_code == SUCCESS:
                return response
            raise PayError(
                f"transfer error, errcode={response.err_code},errmsg={response.err_code_des}"
            )
        text = raw.decode("utf-8", errors="replace")
        raise PayError(f"[msg : xmlUnmarshalError] [rawReturn : {text}] [sign : {sign}]")