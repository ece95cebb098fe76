"""Unified orders, JS/app bridge settings, order closing and order queries."""

from __future__ import annotations

import dataclasses
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, fields
from typing import Any, TypeVar

from .config import Config
from .crypto import SIGN_TYPE_MD5, calculate_sign, param_sign
from .errors import PayError
from .helpers import current_timestamp, random_str
from .http import marshal_xml, post_xml
from .notify import PaidResult, parse_paid_result

PAY_GATEWAY = "https://api.mch.weixin.qq.com/pay/unifiedorder"
CLOSE_GATEWAY = "https://api.mch.weixin.qq.com/pay/closeorder"
QUERY_GATEWAY = "https://api.mch.weixin.qq.com/pay/orderquery"

SUCCESS = "SUCCESS"
APP_PACKAGE = "Sign=WXPay"

_T = TypeVar("_T")


def _tag(name: str, default: Any = "") -> Any:
    return field(default=default, metadata={"xml": name})


def _parse_xml(cls: type[_T], data: bytes | str) -> _T:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise PayError(f"xml Unmarshal Error, err={exc}") from exc
    texts = {child.tag: child.text or "" for child in root}
    values = {
        spec.name: texts[spec.metadata["xml"]]
        for spec in fields(cls)
        if spec.metadata["xml"] in texts
    }
    return cls(**values)


def _raw_return_error(raw: bytes, sign: str) -> PayError:
    text = raw.decode("utf-8", errors="replace")
    return PayError(f"[msg : xmlUnmarshalError] [rawReturn : {text}] [sign : {sign}]")


def _omit_empty(value: str) -> str | None:
    return value or None


@dataclass
class Params:
    """Parameters of a unified order; ``time_expire`` is formatted ``yyyyMMddHHmmss``."""

    total_fee: str = ""
    create_ip: str = ""
    body: str = ""
    out_trade_no: str = ""
    time_expire: str = ""
    open_id: str = ""
    trade_type: str = ""
    sign_type: str = ""
    detail: str = ""
    attach: str = ""
    goods_tag: str = ""
    notify_url: str = ""


@dataclass(frozen=True)
class BridgeConfig:
    """Settings handed to the JS SDK to start a payment."""

    timestamp: str
    nonce_str: str
    pre_pay_id: str
    sign_type: str
    package: str
    pay_sign: str


@dataclass(frozen=True)
class AppBridgeConfig:
    """Settings handed to the app SDK to start a payment."""

    app_id: str
    mch_id: str
    pre_pay_id: str
    package: str
    nonce_str: str
    timestamp: str
    sign: str


@dataclass
class PreOrder:
    """The answer of the unified order API."""

    return_code: str = _tag("return_code")
    return_msg: str = _tag("return_msg")
    app_id: str = _tag("appid")
    mch_id: str = _tag("mch_id")
    nonce_str: str = _tag("nonce_str")
    sign: str = _tag("sign")
    result_code: str = _tag("result_code")
    trade_type: str = _tag("trade_type")
    pre_pay_id: str = _tag("prepay_id")
    code_url: str = _tag("code_url")
    mweb_url: str = _tag("mweb_url")
    err_code: str = _tag("err_code")
    err_code_des: str = _tag("err_code_des")


@dataclass
class CloseParams:
    """Parameters for closing an order."""

    out_trade_no: str = ""
    sign_type: str = ""


@dataclass
class CloseResult:
    """The answer of the close order API."""

    return_code: str | None = _tag("return_code", None)
    return_msg: str | None = _tag("return_msg", None)
    app_id: str | None = _tag("appid", None)
    mch_id: str | None = _tag("mch_id", None)
    nonce_str: str | None = _tag("nonce_str", None)
    sign: str | None = _tag("sign", None)
    result_code: str | None = _tag("result_code", None)
    result_msg: str | None = _tag("result_msg", None)
    err_code: str | None = _tag("err_code", None)
    err_code_des: str | None = _tag("err_code_des", None)


@dataclass
class QueryParams:
    """Parameters for querying an order by merchant or transaction number."""

    out_trade_no: str = ""
    sign_type: str = ""
    transaction_id: str = ""


@dataclass
class Order:
    """Order APIs for one merchant account."""

    config: Config

    def pre_pay_order(self, params: Params) -> PreOrder:
        """Place a unified order and return the service's answer."""
        nonce_str = random_str(32)
        params = dataclasses.replace(
            params,
            notify_url=params.notify_url or self.config.notify_url,
            sign_type=params.sign_type or SIGN_TYPE_MD5,
        )
        to_sign = {
            "appid": self.config.app_id,
            "body": params.body,
            "mch_id": self.config.mch_id,
            "nonce_str": nonce_str,
            "out_trade_no": params.out_trade_no,
            "spbill_create_ip": params.create_ip,
            "total_fee": params.total_fee,
            "trade_type": params.trade_type,
            "openid": params.open_id,
            "sign_type": params.sign_type,
            "detail": params.detail,
            "attach": params.attach,
            "goods_tag": params.goods_tag,
            "notify_url": params.notify_url,
        }
        if params.time_expire:
            to_sign["time_expire"] = params.time_expire
        sign = param_sign(to_sign, self.config.key)

        request = [
            ("appid", self.config.app_id),
            ("mch_id", self.config.mch_id),
            ("nonce_str", nonce_str),
            ("sign", sign),
            ("sign_type", _omit_empty(params.sign_type)),
            ("body", params.body),
            ("detail", _omit_empty(params.detail)),
            ("attach", _omit_empty(params.attach)),
            ("out_trade_no", params.out_trade_no),
            ("total_fee", params.total_fee),
            ("spbill_create_ip", params.create_ip),
            ("time_expire", _omit_empty(params.time_expire)),
            ("goods_tag", _omit_empty(params.goods_tag)),
            ("notify_url", params.notify_url),
            ("trade_type", params.trade_type),
            ("openid", _omit_empty(params.open_id)),
        ]
        raw = post_xml(PAY_GATEWAY, marshal_xml(request, "xml"))
        order = _parse_xml(PreOrder, raw)
        if order.return_code == SUCCESS:
            if order.result_code == SUCCESS:
                return order
            raise PayError(order.err_code + order.err_code_des)
        raise _raw_return_error(raw, sign)

    def pre_pay_id(self, params: Params) -> str:
        """Place a unified order and return its prepay id."""
        order = self.pre_pay_order(params)
        if not order.pre_pay_id:
            raise PayError("empty prepayid")
        return order.pre_pay_id

    def bridge_config(self, params: Params) -> BridgeConfig:
        """Place an order and build the signed settings for the JS SDK."""
        timestamp = str(current_timestamp())
        order = self.pre_pay_order(params)
        sign_type = params.sign_type or SIGN_TYPE_MD5
        package = "prepay_id=" + order.pre_pay_id
        content = (
            f"appId={order.app_id}&nonceStr={order.nonce_str}&package={package}"
            f"&signType={sign_type}&timeStamp={timestamp}&key={self.config.key}"
        )
        return BridgeConfig(
            timestamp=timestamp,
            nonce_str=order.nonce_str,
            pre_pay_id=order.pre_pay_id,
            sign_type=sign_type,
            package=package,
            pay_sign=calculate_sign(content, sign_type, self.config.key),
        )

    def bridge_app_config(self, params: Params) -> AppBridgeConfig:
        """Place an order and build the signed settings for the app SDK."""
        timestamp = str(current_timestamp())
        nonce_str = random_str(32)
        order = self.pre_pay_order(params)
        values = {
            "appid": order.app_id,
            "partnerid": order.mch_id,
            "prepayid": order.pre_pay_id,
            "package": APP_PACKAGE,
            "noncestr": nonce_str,
            "timestamp": timestamp,
        }
        return AppBridgeConfig(
            app_id=values["appid"],
            mch_id=values["partnerid"],
            pre_pay_id=values["prepayid"],
            package=values["package"],
            nonce_str=values["noncestr"],
            timestamp=values["timestamp"],
            sign=param_sign(values, self.config.key),
        )

    def close_order(self, params: CloseParams) -> CloseResult:
        """Close an unpaid order."""
        nonce_str = random_str(32)
        sign_type = params.sign_type or SIGN_TYPE_MD5
        sign = param_sign(
            {
                "appid": self.config.app_id,
                "mch_id": self.config.mch_id,
                "nonce_str": nonce_str,
                "out_trade_no": params.out_trade_no,
                "sign_type": sign_type,
            },
            self.config.key,
        )
        request = [
            ("appid", self.config.app_id),
            ("mch_id", self.config.mch_id),
            ("nonce_str", nonce_str),
            ("sign", sign),
            ("sign_type", _omit_empty(sign_type)),
            ("out_trade_no", params.out_trade_no),
        ]
        raw = post_xml(CLOSE_GATEWAY, marshal_xml(request, "closeRequest"))
        result = _parse_xml(CloseResult, raw)
        if result.return_code == SUCCESS:
            if result.result_code == SUCCESS:
                return result
            raise PayError((result.err_code or "") + (result.err_code_des or ""))
        raise _raw_return_error(raw, sign)

    def query_order(self, params: QueryParams) -> PaidResult:
        """Query an order by merchant order number or transaction id."""
        nonce_str = random_str(32)
        sign_type = params.sign_type or SIGN_TYPE_MD5
        sign = param_sign(
            {
                "appid": self.config.app_id,
                "mch_id": self.config.mch_id,
                "nonce_str": nonce_str,
                "out_trade_no": params.out_trade_no,
                "sign_type": sign_type,
                "transaction_id": params.transaction_id,
            },
            self.config.key,
        )
        request = [
            ("appid", self.config.app_id),
            ("mch_id", self.config.mch_id),
            ("nonce_str", nonce_str),
            ("sign", sign),
            ("sign_type", _omit_empty(sign_type)),
            ("transaction_id", params.transaction_id),
            ("out_trade_no", params.out_trade_no),
        ]
        raw = post_xml(QUERY_GATEWAY, marshal_xml(request, "queryRequest"))
        result = parse_paid_result(raw)
        if result.return_code == SUCCESS:
            if result.result_code == SUCCESS:
                return result
            raise PayError((result.err_code or "") + (result.err_code_des or ""))
        raise _raw_return_error(raw, sign)