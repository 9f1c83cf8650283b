import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from selfgate.core import codec
from selfgate.core.codec import CorrelationPayload
from selfgate.core.dispatcher import SUCCESS_TEXT, CompletionDispatcher, CompletionStatus
from selfgate.core.registry import SessionRegistry

ACCEPTED = {"isValidDetails": {"isValid": True, "isMinimumAgeValid": True, "isOfacValid": False}}
REJECTED = {"isValidDetails": {"isValid": True, "isMinimumAgeValid": False, "isOfacValid": False}}


@pytest.fixture
def platform():
    p = MagicMock()
    p.fetch_member = AsyncMock(return_value="member-U1")
    p.add_role = AsyncMock()
    p.send_direct_message = AsyncMock()
    return p


@pytest.fixture
def registry():
    return SessionRegistry()


def _token_for(registry, requester="U1", origin="G1"):
    sid = registry.create(requester, origin)
    return sid, codec.encode(CorrelationPayload(sessionId=sid, requesterId=requester, originId=origin))


def test_accepted_grants_role_and_notifies(registry, platform):
    d = CompletionDispatcher(registry, platform, role_id="R1")
    sid, token = _token_for(registry)

    status = asyncio.run(d.complete(token, ACCEPTED))

    assert status is CompletionStatus.COMPLETED
    platform.fetch_member.assert_awaited_once_with("G1", "U1")
    platform.add_role.assert_awaited_once_with("member-U1", "R1")
    platform.send_direct_message.assert_awaited_once_with("U1", SUCCESS_TEXT)
    assert registry.lookup(sid) is None


def test_decode_failure_touches_nothing(platform):
    registry = MagicMock()
    d = CompletionDispatcher(registry, platform, role_id="R1")

    status = asyncio.run(d.complete("not-a-token", ACCEPTED))

    assert status is CompletionStatus.DECODE_FAILED
    assert registry.method_calls == []
    assert platform.method_calls == []


def test_rejection_keeps_session_and_skips_side_effects(registry, platform):
    d = CompletionDispatcher(registry, platform, role_id="R1")
    sid, token = _token_for(registry)

    status = asyncio.run(d.complete(token, REJECTED))

    assert status is CompletionStatus.REJECTED
    assert registry.lookup(sid) is not None
    platform.fetch_member.assert_not_awaited()
    platform.send_direct_message.assert_not_awaited()


def test_second_completion_is_noop_and_logged(registry, platform):
    d = CompletionDispatcher(registry, platform, role_id="R1")
    _, token = _token_for(registry)

    assert asyncio.run(d.complete(token, ACCEPTED)) is CompletionStatus.COMPLETED
    platform.reset_mock()

    with patch("selfgate.core.dispatcher.log") as mock_log:
        status = asyncio.run(d.complete(token, ACCEPTED))

    assert status is CompletionStatus.UNKNOWN_SESSION
    assert platform.method_calls == []
    assert mock_log.call_args.args[0] == "verification.unknown_session"


def test_role_failure_does_not_skip_dm(registry, platform):
    platform.add_role.side_effect = RuntimeError("Missing Permissions")
    d = CompletionDispatcher(registry, platform, role_id="R1")
    _, token = _token_for(registry)

    with patch("selfgate.core.dispatcher.log") as mock_log:
        status = asyncio.run(d.complete(token, ACCEPTED))

    assert status is CompletionStatus.COMPLETED
    platform.send_direct_message.assert_awaited_once()
    events = [c.args[0] for c in mock_log.call_args_list]
    assert "verification.role_grant_failed" in events
    assert "verification.role_assigned" not in events


def test_member_lookup_failure_does_not_skip_dm(registry, platform):
    platform.fetch_member.side_effect = LookupError("Unknown Member")
    d = CompletionDispatcher(registry, platform, role_id="R1")
    _, token = _token_for(registry)

    assert asyncio.run(d.complete(token, ACCEPTED)) is CompletionStatus.COMPLETED
    platform.add_role.assert_not_awaited()
    platform.send_direct_message.assert_awaited_once()


def test_dm_failure_after_grant_is_swallowed(registry, platform):
    platform.send_direct_message.side_effect = RuntimeError("Cannot send messages to this user")
    d = CompletionDispatcher(registry, platform, role_id="R1")
    _, token = _token_for(registry)

    with patch("selfgate.core.dispatcher.log") as mock_log:
        status = asyncio.run(d.complete(token, ACCEPTED))

    assert status is CompletionStatus.COMPLETED
    platform.add_role.assert_awaited_once()
    assert mock_log.call_args.args[0] == "verification.dm_failed"
    assert mock_log.call_args.kwargs["discordUserId"] == "U1"


def test_missing_role_config_still_notifies(registry, platform):
    d = CompletionDispatcher(registry, platform, role_id=None)
    _, token = _token_for(registry)

    with patch("selfgate.core.dispatcher.log") as mock_log:
        assert asyncio.run(d.complete(token, ACCEPTED)) is CompletionStatus.COMPLETED

    platform.fetch_member.assert_not_awaited()
    platform.send_direct_message.assert_awaited_once()
    assert mock_log.call_args_list[0].args[0] == "verification.no_role_configured"


def test_session_ids_win_over_token_ids(registry, platform):
    d = CompletionDispatcher(registry, platform, role_id="R1")
    sid = registry.create("U1", "G1")
    forged = codec.encode(CorrelationPayload(sessionId=sid, requesterId="U2", originId="G2"))

    assert asyncio.run(d.complete(forged, ACCEPTED)) is CompletionStatus.COMPLETED
    platform.fetch_member.assert_awaited_once_with("G1", "U1")
    platform.send_direct_message.assert_awaited_once_with("U1", SUCCESS_TEXT)
