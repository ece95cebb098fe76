import time

import pytest

from wxpay.helpers import current_timestamp, random_str, signature, slice_chunk


def test_signature():
    assert signature("a", "b", "c") == "a9993e364706816aba3e25717850c26c9cd0d89d"


def test_signature_order_independent():
    assert signature("c", "a", "b") == signature("a", "b", "c")


SRC = ["1", "2", "3", "4", "5"]


@pytest.mark.parametrize(
    "size, expected",
    [
        (2, [["1", "2"], ["3", "4"], ["5"]]),
        (5, [["1", "2", "3", "4", "5"]]),
        (6, [["1", "2", "3", "4", "5"]]),
        (1, [["1"], ["2"], ["3"], ["4"], ["5"]]),
        (0, [["1"], ["2"], ["3"], ["4"], ["5"]]),
        (-100, [["1"], ["2"], ["3"], ["4"], ["5"]]),
    ],
)
def test_slice_chunk(size, expected):
    assert slice_chunk(SRC, size) == expected


def test_slice_chunk_none():
    assert slice_chunk(None, 5) == []


def test_random_str_length_and_alphabet():
    value = random_str(32)
    assert len(value) == 32
    assert value.isalnum() and value.isascii()


def test_random_str_zero():
    assert random_str(0) == ""


def test_random_str_varies():
    assert len({random_str(32) for _ in range(5)}) == 5


def test_current_timestamp():
    before = int(time.time())
    now = current_timestamp()
    after = int(time.time())
    assert before <= now <= after