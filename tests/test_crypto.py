import base64

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from wxpay.crypto import (
    SIGN_TYPE_HMAC_SHA256,
    SIGN_TYPE_MD5,
    CryptoError,
    aes_decrypt_msg,
    aes_ecb_decrypt,
    aes_ecb_encrypt,
    aes_encrypt_msg,
    calculate_sign,
    decrypt_msg,
    encrypt_msg,
    order_param,
    param_sign,
    pkcs5_padding,
    pkcs5_unpadding,
    rsa_decrypt,
    rsa_decrypt_base64,
)

RAW_KEY = bytes(range(32))
ENCODED_KEY = base64.b64encode(RAW_KEY).decode().rstrip("=")
RANDOM = b"0123456789abcdef"
APP_ID = "wx_app_id_example"
MESSAGE = b"<xml><Content>hello</Content></xml>"


def test_encrypt_decrypt_round_trip():
    encrypted = encrypt_msg(RANDOM, MESSAGE, APP_ID, ENCODED_KEY)
    random, raw = decrypt_msg(APP_ID, encrypted.decode(), ENCODED_KEY)
    assert random == RANDOM
    assert raw == MESSAGE


def test_aes_encrypt_block_multiple_and_round_trip():
    ciphertext = aes_encrypt_msg(RANDOM, MESSAGE, APP_ID, RAW_KEY)
    assert len(ciphertext) % 32 == 0
    random, raw, app_id = aes_decrypt_msg(ciphertext, RAW_KEY)
    assert (random, raw, app_id) == (RANDOM, MESSAGE, APP_ID.encode())


def test_aes_encrypt_short_random_is_zero_filled():
    ciphertext = aes_encrypt_msg(b"ab", MESSAGE, APP_ID, RAW_KEY)
    random, _, _ = aes_decrypt_msg(ciphertext, RAW_KEY)
    assert random == b"ab" + b"\0" * 14


def test_decrypt_msg_wrong_app_id():
    encrypted = encrypt_msg(RANDOM, MESSAGE, APP_ID, ENCODED_KEY)
    with pytest.raises(CryptoError, match="APPID"):
        decrypt_msg("other_app", encrypted.decode(), ENCODED_KEY)


def test_encrypt_msg_bad_key_length():
    with pytest.raises(CryptoError, match="43"):
        encrypt_msg(RANDOM, MESSAGE, APP_ID, "short")


def test_decrypt_msg_bad_base64():
    with pytest.raises(CryptoError):
        decrypt_msg(APP_ID, "!!!not base64!!!", ENCODED_KEY)


def test_aes_decrypt_msg_too_short():
    with pytest.raises(CryptoError, match="too short"):
        aes_decrypt_msg(b"\0" * 16, RAW_KEY)


def test_aes_decrypt_msg_not_block_multiple():
    with pytest.raises(CryptoError, match="multiple"):
        aes_decrypt_msg(b"\0" * 40, RAW_KEY)


def test_calculate_sign_md5_empty():
    assert calculate_sign("", SIGN_TYPE_MD5, "key") == "D41D8CD98F00B204E9800998ECF8427E"


def test_calculate_sign_hmac_sha256():
    result = calculate_sign("what do ya want for nothing?", SIGN_TYPE_HMAC_SHA256, "Jefe")
    assert result == "5BDCC146BF60754E6A042426089575C75A003F089D2739839DEC58B964EC3843"


def test_calculate_sign_unknown_type_uses_md5():
    assert calculate_sign("abc", "", "k") == calculate_sign("abc", SIGN_TYPE_MD5, "other")


def test_order_param_sorts_and_skips():
    params = {"b": "2", "a": "1", "sign": "x", "c": ""}
    assert order_param(params, "&key=k") == "a=1&b=2&key=k"


def test_order_param_empty():
    assert order_param({}, "&key=k") == "&key=k"


def test_param_sign_defaults_to_md5():
    params = {"appid": "app", "mch_id": "mch"}
    expected = calculate_sign(order_param(params, "&key=k"), SIGN_TYPE_MD5, "k")
    assert param_sign(params, "k") == expected


def test_param_sign_hmac():
    params = {"appid": "app", "sign_type": SIGN_TYPE_HMAC_SHA256}
    expected = calculate_sign(order_param(params, "&key=k"), SIGN_TYPE_HMAC_SHA256, "k")
    assert param_sign(params, "k") == expected


def test_param_sign_invalid_type():
    with pytest.raises(CryptoError, match="invalid sign_type"):
        param_sign({"sign_type": "SHA1"}, "k")


def test_pkcs5_padding_round_trip():
    for data in (b"", b"abc", b"a" * 8, b"a" * 13):
        padded = pkcs5_padding(data, 8)
        assert len(padded) % 8 == 0
        assert len(padded) > len(data)
        assert pkcs5_unpadding(padded) == data


def test_pkcs5_padding_full_block_adds_block():
    assert len(pkcs5_padding(b"a" * 8, 8)) == 2 * 8


def test_pkcs5_unpadding_empty():
    with pytest.raises(CryptoError):
        pkcs5_unpadding(b"")


def test_aes_ecb_round_trip():
    key = b"k" * 32
    plaintext = b"<root><refund_id>1</refund_id></root>"
    ciphertext = aes_ecb_encrypt(plaintext, key)
    assert len(ciphertext) % 16 == 0
    assert aes_ecb_decrypt(ciphertext, key) == plaintext


def test_aes_ecb_decrypt_too_short():
    with pytest.raises(CryptoError, match="too short"):
        aes_ecb_decrypt(b"\0" * 8, b"k" * 32)


def test_aes_ecb_decrypt_not_multiple():
    with pytest.raises(CryptoError, match="multiple"):
        aes_ecb_decrypt(b"\0" * 20, b"k" * 32)


def test_aes_ecb_decrypt_bad_key():
    with pytest.raises(CryptoError):
        aes_ecb_decrypt(b"\0" * 16, b"k" * 5)


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _pem(key, fmt):
    return key.private_bytes(
        serialization.Encoding.PEM, fmt, serialization.NoEncryption()
    ).decode()


@pytest.mark.parametrize(
    "fmt",
    [serialization.PrivateFormat.TraditionalOpenSSL, serialization.PrivateFormat.PKCS8],
)
def test_rsa_decrypt_round_trip(rsa_key, fmt):
    ciphertext = rsa_key.public_key().encrypt(b"bank card data", padding.PKCS1v15())
    assert rsa_decrypt(_pem(rsa_key, fmt), ciphertext) == b"bank card data"


def test_rsa_decrypt_base64(rsa_key):
    ciphertext = rsa_key.public_key().encrypt(b"payload", padding.PKCS1v15())
    pem = _pem(rsa_key, serialization.PrivateFormat.PKCS8)
    assert rsa_decrypt_base64(pem, base64.b64encode(ciphertext).decode()) == b"payload"


def test_rsa_decrypt_not_pem():
    with pytest.raises(CryptoError, match="PrivateKey format error"):
        rsa_decrypt("placeholder", b"data")


def test_rsa_decrypt_non_rsa_key():
    ec_key = ec.generate_private_key(ec.SECP256R1())
    with pytest.raises(CryptoError, match="Not supported"):
        rsa_decrypt(_pem(ec_key, serialization.PrivateFormat.PKCS8), b"data")


def test_rsa_decrypt_bad_ciphertext(rsa_key):
    pem = _pem(rsa_key, serialization.PrivateFormat.PKCS8)
    with pytest.raises(CryptoError):
        rsa_decrypt(pem, b"\x01" * 256)