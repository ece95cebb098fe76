"""Message encryption, request signing and key handling for the payment APIs."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import re
import struct
from collections.abc import Mapping

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.serialization import load_der_private_key

SIGN_TYPE_MD5 = "MD5"
SIGN_TYPE_HMAC_SHA256 = "HMAC-SHA256"

_MSG_BLOCK_SIZE = 32
_AES_BLOCK_SIZE = 16
_PEM_BLOCK = re.compile(
    r"-----BEGIN ([^\r\n-]*)-----(.*?)-----END \1-----", re.DOTALL
)


class CryptoError(ValueError):
    """Encryption, decryption or signing could not be carried out."""


def _b64decode(text: str | bytes) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CryptoError(f"invalid base64 data: {exc}") from exc


def _cipher(key: bytes, mode: modes.Mode) -> Cipher:
    try:
        return Cipher(algorithms.AES(key), mode)
    except ValueError as exc:
        raise CryptoError(f"invalid AES key: {exc}") from exc


def _aes_key_decode(encoded_aes_key: str) -> bytes:
    if len(encoded_aes_key) != 43:
        raise CryptoError("the length of encodedAESKey must be equal to 43")
    key = _b64decode(encoded_aes_key + "=")
    if len(key) != 32:
        raise CryptoError("encodingAESKey invalid")
    return key


def aes_encrypt_msg(random: bytes, raw_xml_msg: bytes, app_id: str, aes_key: bytes) -> bytes:
    """Encrypt ``random(16) + msg_len(4) + raw_xml_msg + app_id`` with AES-CBC."""
    body = (
        bytes(random[:16]).ljust(16, b"\0")
        + struct.pack(">I", len(raw_xml_msg))
        + bytes(raw_xml_msg)
        + app_id.encode("utf-8")
    )
    amount_to_pad = _MSG_BLOCK_SIZE - len(body) % _MSG_BLOCK_SIZE
    body += bytes([amount_to_pad]) * amount_to_pad
    encryptor = _cipher(aes_key, modes.CBC(aes_key[:16])).encryptor()
    return encryptor.update(body) + encryptor.finalize()


def encrypt_msg(random: bytes, raw_xml_msg: bytes, app_id: str, aes_key: str) -> bytes:
    """Encrypt a message with the 43-character encoded AES key; returns base64 bytes."""
    key = _aes_key_decode(aes_key)
    return base64.b64encode(aes_encrypt_msg(random, raw_xml_msg, app_id, key))


def aes_decrypt_msg(ciphertext: bytes, aes_key: bytes) -> tuple[bytes, bytes, bytes]:
    """Decrypt a message; returns ``(random, raw_xml_msg, app_id)``."""
    if len(ciphertext) < _MSG_BLOCK_SIZE:
        raise CryptoError(f"the length of ciphertext too short: {len(ciphertext)}")
    if len(ciphertext) % _MSG_BLOCK_SIZE:
        raise CryptoError(
            f"ciphertext is not a multiple of the block size, the length is {len(ciphertext)}"
        )
    decryptor = _cipher(aes_key, modes.CBC(aes_key[:16])).decryptor()
    plaintext = decryptor.update(ciphertext) + decryptor.finalize()

    amount_to_pad = plaintext[-1]
    if not 1 <= amount_to_pad <= _MSG_BLOCK_SIZE:
        raise CryptoError(f"the amount to pad is incorrect: {amount_to_pad}")
    plaintext = plaintext[:-amount_to_pad]

    if len(plaintext) <= 20:
        raise CryptoError(f"plaintext too short, the length is {len(plaintext)}")
    (msg_len,) = struct.unpack(">I", plaintext[16:20])
    app_id_offset = 20 + msg_len
    if len(plaintext) <= app_id_offset:
        raise CryptoError(f"msg length too large: {msg_len}")
    return plaintext[:16], plaintext[20:app_id_offset], plaintext[app_id_offset:]


def decrypt_msg(app_id: str, encrypted_msg: str, aes_key: str) -> tuple[bytes, bytes]:
    """Decrypt a base64 message and check its app id; returns ``(random, raw_xml_msg)``."""
    encrypted = _b64decode(encrypted_msg)
    key = _aes_key_decode(aes_key)
    try:
        random, raw_xml_msg, got_app_id = aes_decrypt_msg(encrypted, key)
    except CryptoError as exc:
        raise CryptoError(f"message decryption failed, {exc}") from exc
    if got_app_id != app_id.encode("utf-8"):
        raise CryptoError("message decryption failed to verify APPID")
    return random, raw_xml_msg


def calculate_sign(content: str, sign_type: str, key: str) -> str:
    """Upper-case hex signature: HMAC-SHA256 for that sign type, MD5 otherwise."""
    if sign_type == SIGN_TYPE_HMAC_SHA256:
        digest = hmac.new(key.encode("utf-8"), content.encode("utf-8"), hashlib.sha256)
    else:
        digest = hashlib.md5(content.encode("utf-8"))
    return digest.hexdigest().upper()


def order_param(params: Mapping[str, str], biz_key: str) -> str:
    """Join non-empty params as sorted ``k=v`` pairs, skipping ``sign``, then add ``biz_key``."""
    pairs = "&".join(
        f"{name}={params[name]}"
        for name in sorted(params)
        if name != "sign" and params[name] != ""
    )
    return pairs + biz_key


def param_sign(params: Mapping[str, str], key: str) -> str:
    """Sign request parameters with the merchant key, honouring ``sign_type``."""
    content = order_param(params, "&key=" + key)
    sign_type = params.get("sign_type", "")
    if sign_type == "":
        sign_type = SIGN_TYPE_MD5
    elif sign_type not in (SIGN_TYPE_MD5, SIGN_TYPE_HMAC_SHA256):
        raise CryptoError("invalid sign_type")
    return calculate_sign(content, sign_type, key)


def pkcs5_padding(data: bytes, block_size: int) -> bytes:
    """Pad ``data`` to a whole number of blocks."""
    amount = block_size - len(data) % block_size
    return bytes(data) + bytes([amount]) * amount


def pkcs5_unpadding(data: bytes) -> bytes:
    """Strip the padding whose length the last byte gives."""
    if not data:
        raise CryptoError("cannot unpad empty data")
    amount = data[-1]
    if amount > len(data):
        raise CryptoError(f"the amount to pad is incorrect: {amount}")
    return bytes(data[: len(data) - amount])


def aes_ecb_encrypt(plaintext: bytes, aes_key: bytes) -> bytes:
    """Pad and encrypt ``plaintext`` with AES in ECB mode."""
    encryptor = _cipher(aes_key, modes.ECB()).encryptor()
    return encryptor.update(pkcs5_padding(plaintext, _AES_BLOCK_SIZE)) + encryptor.finalize()


def aes_ecb_decrypt(ciphertext: bytes, aes_key: bytes) -> bytes:
    """Decrypt AES-ECB data and remove its padding."""
    if len(ciphertext) < _AES_BLOCK_SIZE:
        raise CryptoError("ciphertext too short")
    if len(ciphertext) % _AES_BLOCK_SIZE:
        raise CryptoError("ciphertext is not a multiple of the block size")
    decryptor = _cipher(aes_key, modes.ECB()).decryptor()
    return pkcs5_unpadding(decryptor.update(ciphertext) + decryptor.finalize())


def _load_rsa_private_key(private_key: str) -> rsa.RSAPrivateKey:
    match = _PEM_BLOCK.search(private_key)
    if match is None:
        raise CryptoError("PrivateKey format error")
    der = _b64decode("".join(match.group(2).split()))
    try:
        key = load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CryptoError(f"cannot parse private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise CryptoError(
            f"Not supported privatekey format, should be an RSA key, got {type(key).__name__}"
        )
    return key


def rsa_decrypt(private_key: str, ciphertext: bytes) -> bytes:
    """Decrypt PKCS#1 v1.5 data with a PEM (PKCS#1 or PKCS#8) RSA private key."""
    key = _load_rsa_private_key(private_key)
    try:
        return key.decrypt(ciphertext, padding.PKCS1v15())
    except ValueError as exc:
        raise CryptoError(f"rsa decryption failed: {exc}") from exc


def rsa_decrypt_base64(private_key: str, crypto_text: str) -> bytes:
    """Base64-decode ``crypto_text`` and decrypt it with :func:`rsa_decrypt`."""
    return rsa_decrypt(private_key, _b64decode(crypto_text))