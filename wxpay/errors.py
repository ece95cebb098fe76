"""Errors reported by the WeChat APIs and helpers to decode them."""

from __future__ import annotations

import json
from typing import Any


class PayError(Exception):
    """A request to the payment service failed or returned an unusable answer."""


class CommonError(PayError):
    """The common ``errcode``/``errmsg`` error answer of the WeChat APIs."""

    def __init__(self, api_name: str, err_code: int, err_msg: str) -> None:
        self.api_name = api_name
        self.err_code = err_code
        self.err_msg = err_msg
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"{self.api_name} Error , errcode={self.err_code} , errmsg={self.err_msg}"


def _load_object(response: bytes | str) -> dict[str, Any]:
    try:
        data = json.loads(response)
    except (ValueError, TypeError) as exc:
        raise PayError(f"json Unmarshal Error, err={exc}") from exc
    if not isinstance(data, dict):
        raise PayError("json Unmarshal Error, err=response is not a JSON object")
    return data


def _error_fields(data: dict[str, Any]) -> tuple[int, str]:
    code = data.get("errcode", 0)
    msg = data.get("errmsg", "")
    if isinstance(code, bool) or not isinstance(code, int):
        raise PayError("errcode or errmsg is invalid")
    if not isinstance(msg, str):
        raise PayError("errcode or errmsg is invalid")
    return code, msg


def decode_with_common_error(response: bytes | str, api_name: str) -> dict[str, Any]:
    """Decode a JSON answer, raising :class:`CommonError` when ``errcode`` is set."""
    data = _load_object(response)
    code, msg = _error_fields(data)
    if code != 0:
        raise CommonError(api_name, code, msg)
    return data


def decode_with_error(response: bytes | str, api_name: str) -> dict[str, Any]:
    """Decode a JSON answer into a dict, raising :class:`CommonError` on an error code."""
    data = _load_object(response)
    code, msg = _error_fields(data)
    if code != 0:
        raise CommonError(api_name, code, msg)
    return data