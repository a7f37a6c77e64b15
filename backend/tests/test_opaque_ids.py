"""Signed external asset ids."""
from app.utils.opaque_ids import decode_id, encode_id


class TestOpaqueIds:
    def test_round_trip(self):
        assert decode_id(encode_id(42)) == 42

    def test_not_sequential_looking(self):
        a, b = encode_id(1), encode_id(2)
        assert a[:6] != b[:6]
        assert not a.isdigit()

    def test_forged_token_rejected(self):
        token = encode_id(7)
        other = encode_id(8)
        # signature of 7 with the payload of 8
        forged = token[:12] + other[12:]
        assert decode_id(forged) is None

    def test_garbage(self):
        assert decode_id("") is None
        assert decode_id("1") is None
        assert decode_id("@@@@") is None

    def test_secret_matters(self, monkeypatch):
        token = encode_id(5)
        monkeypatch.setenv("ASSET_ID_SECRET", "another-secret")
        assert decode_id(token) is None
