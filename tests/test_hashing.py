import hashlib
import re

import pytest

from mynumbercard_idp.hashing import HASH_HEX_LENGTH, to_hash_string


@pytest.mark.parametrize("nonce", ["", "abc", "ÄÖÜ-nonce", "I" * 500])
def test_hash_is_lowercase_hex_of_fixed_length(nonce):
    digest = to_hash_string(nonce)

    assert len(digest) == HASH_HEX_LENGTH == 64
    assert re.fullmatch(r"[0-9a-f]{64}", digest)
    assert digest == to_hash_string(nonce)


def test_hash_matches_sha256_of_utf8_bytes():
    assert to_hash_string("nonce") == hashlib.sha256(b"nonce").hexdigest()
    assert to_hash_string("İ") == hashlib.sha256("İ".encode("utf-8")).hexdigest()
