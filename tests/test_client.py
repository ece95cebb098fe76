import pytest

from wxpay.client import Pay
from wxpay.config import Config
from wxpay.errors import PayError
from wxpay.notify import Notify, RefundedResult
from wxpay.order import Order
from wxpay.refund import Refund, RefundParams
from wxpay.transfer import Transfer

CONFIG = Config(app_id="wx-test-app", mch_id="mch-test-001", key="placeholder")


def test_order_uses_config():
    assert Pay(CONFIG).order() == Order(CONFIG)
    assert Pay(CONFIG).order().config is CONFIG


def test_notify_uses_config():
    assert Pay(CONFIG).notify() == Notify(CONFIG)


def test_refund_uses_config():
    assert Pay(CONFIG).refund() == Refund(CONFIG)


def test_transfer_uses_config():
    assert Pay(CONFIG).transfer() == Transfer(CONFIG)


def test_refund_from_client_signs_with_config():
    signed = Pay(CONFIG).refund().sign_params(RefundParams(out_refund_no="R-1"))
    assert signed["appid"] == CONFIG.app_id
    assert signed["mch_id"] == CONFIG.mch_id


def test_notify_from_client_rejects_missing_req_info():
    with pytest.raises(PayError, match="empty refunded_result or req_info"):
        Pay(CONFIG).notify().decrypt_req_info(RefundedResult())


def test_each_call_gives_fresh_handler():
    pay = Pay(CONFIG)
    first = pay.order()
    second = pay.order()
    assert first is not second
    assert first == Order(CONFIG)
    assert second == Order(CONFIG)
    assert first.config is CONFIG
    assert second.config is CONFIG