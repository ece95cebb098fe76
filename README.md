# wxpay

A small client for the WeChat Pay merchant API.

- `wxpay.client`: `Pay`, the entry point for one merchant account
- `wxpay.config`: `Config`, which holds the app id, merchant id, API key and default notify URL
- `wxpay.order`: unified orders, JS-bridge and app-bridge settings, closing and querying orders
- `wxpay.refund`: refund requests sent with the merchant's client certificate
- `wxpay.transfer`: payments into a user's wallet
- `wxpay.notify`: parsing payment and refund notifications, checking payment signatures, decrypting refund details
- `wxpay.crypto`: request signing (MD5 and HMAC-SHA256), AES-CBC message encryption, AES-ECB and RSA decryption
- `wxpay.helpers`: SHA-1 signatures, random nonces, timestamps and list chunking
- `wxpay.http`: the HTTP helpers the APIs use (GET, JSON, multipart and XML posts, XML over client TLS)
- `wxpay.errors`: the exceptions and decoders for JSON `errcode`/`errmsg` answers

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

```python
from wxpay.client import Pay
from wxpay.config import Config
from wxpay.order import Params

cfg = Config(
    app_id="wx-app-id",
    mch_id="merchant-id",
    key="placeholder",
    notify_url="https://example.com/pay/notify",
)
pay = Pay(cfg)

bridge = pay.order().bridge_config(
    Params(
        total_fee="100",
        create_ip="127.0.0.1",
        body="Test item",
        out_trade_no="order-0001",
        open_id="user-open-id",
        trade_type="JSAPI",
    )
)
print(bridge.pay_sign)
```

`Params.notify_url` falls back to `Config.notify_url`, and `Params.sign_type`
to `MD5`. `Order` also offers `pre_pay_order`, `pre_pay_id`,
`bridge_app_config`, `close_order` (with `CloseParams`) and `query_order`
(with `QueryParams`, answered with a `PaidResult`).

### Refunds and wallet transfers

```python
from wxpay.refund import RefundParams
from wxpay.transfer import TransferParams

pay.refund().refund(
    RefundParams(
        out_trade_no="order-0001",
        out_refund_no="refund-0001",
        total_fee="100",
        refund_fee="100",
        root_ca="/path/to/apiclient_cert.p12",
    )
)

pay.transfer().wallet_transfer(
    TransferParams(
        partner_trade_no="transfer-0001",
        open_id="user-open-id",
        amount=100,
        desc="Reward",
        root_ca="/path/to/apiclient_cert.p12",
    )
)
```

Both send the request with the client certificate in the PKCS#12 file
`root_ca`, opened with the merchant id as its password.

### Handling notifications

```python
from wxpay.notify import NotifyResponse, parse_paid_result, parse_refunded_result

notify = pay.notify()
result = parse_paid_result(request_body)
if notify.paid_verify_sign(result):
    reply = NotifyResponse(return_code="SUCCESS", return_msg="OK").to_xml()

details = notify.decrypt_req_info(parse_refunded_result(refund_body))
print(details.refund_status)
```

### Signing helpers

```python
from wxpay.crypto import param_sign
from wxpay.helpers import signature

param_sign({"appid": "wx-app-id", "nonce_str": "abc"}, "placeholder")
signature("a", "b", "c")  # SHA-1 of the sorted, concatenated strings
```

## Errors

- `wxpay.errors.PayError`: the API answered with a failure, or its answer
  could not be read.
- `wxpay.http.HTTPError` (a `PayError`): the request failed or the status
  was not 200.
- `wxpay.errors.CommonError` (a `PayError`): raised by
  `decode_with_common_error` and `decode_with_error` for a JSON answer
  with a non-zero `errcode`.
- `wxpay.crypto.CryptoError` (a `ValueError`): bad keys, bad base64, bad
  padding, an unknown `sign_type`, or a failed decryption.

## What it does not do

The package has no web server and no command line. To receive
notifications, your own web application passes the request body to
`parse_paid_result` or `parse_refunded_result` and returns the bytes of
`NotifyResponse.to_xml()`.