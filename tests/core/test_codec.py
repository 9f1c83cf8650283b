import json
from unittest.mock import patch

import pytest

from selfgate.core import codec
from selfgate.core.codec import CorrelationPayload, KIND
from selfgate.store.models import VerificationSession


def _hex(obj) -> str:
    return json.dumps(obj).encode("utf-8").hex()


def test_round_trip():
    p = CorrelationPayload(sessionId="s-1", requesterId="1234567890", originId="987654321")
    token = codec.encode(p)
    assert all(c in "0123456789abcdef" for c in token)
    assert codec.decode(token) == p


def test_payload_for_session():
    s = VerificationSession(sessionId="abc", requesterId="U1", originId="G1", createdAtMs=1)
    p = codec.payload_for(s)
    assert (p.sessionId, p.requesterId, p.originId, p.kind) == ("abc", "U1", "G1", KIND)


def test_wire_keys_match_deployed_format():
    p = CorrelationPayload(sessionId="s", requesterId="u", originId="g")
    assert json.loads(p.to_json()) == {
        "kind": "discord-self-verification",
        "sessionId": "s",
        "discordUserId": "u",
        "guildId": "g",
    }


def test_decode_accepts_0x_prefix_and_zero_padding():
    p = CorrelationPayload(sessionId="s", requesterId="u", originId="g")
    padded = "0x" + codec.encode(p) + "00" * 16
    assert codec.decode(padded) == p


def test_decode_coerces_numeric_ids():
    token = _hex({"kind": KIND, "sessionId": "s", "discordUserId": 42, "guildId": 7})
    p = codec.decode(token)
    assert p.requesterId == "42" and p.originId == "7"


@pytest.mark.parametrize(
    "token",
    [
        None,
        "",
        123,
        "zz-not-hex",
        "abc",  # odd length
        "fffe",  # not utf-8
        "6e6f74206a736f6e",  # "not json"
        _hex([1, 2, 3]),
        _hex({"kind": "something-else", "sessionId": "s", "discordUserId": "u", "guildId": "g"}),
        _hex({"sessionId": "s", "discordUserId": "u", "guildId": "g"}),
        _hex({"kind": KIND, "discordUserId": "u", "guildId": "g"}),
        _hex({"kind": KIND, "sessionId": "", "discordUserId": "u", "guildId": "g"}),
        _hex({"kind": KIND, "sessionId": "s", "discordUserId": True, "guildId": "g"}),
    ],
)
def test_decode_rejects_without_raising(token):
    assert codec.decode(token) is None


def test_decode_rejection_is_logged():
    with patch("selfgate.core.codec.log") as mock_log:
        codec.decode(_hex({"kind": "other"}))
    assert mock_log.call_args.args[0] == "verification.userdata_decode_error"
    assert mock_log.call_args.kwargs["reason"] == "foreign_kind"


@pytest.mark.parametrize("opener", ["[", '{"a":'])
def test_decode_deeply_nested_json_is_rejected(opener):
    token = (opener * 100000).encode("utf-8").hex()
    with patch("selfgate.core.codec.log") as mock_log:
        assert codec.decode(token) is None
    assert mock_log.call_args.kwargs["reason"] == "malformed:RecursionError"
