from __future__ import annotations

from unittest.mock import Mock

import pytest

from socialfeed.services.notifications import NotificationDispatcher, excerpt

from fakes import InlineExecutor, make_services


@pytest.fixture
def env():
    svc = make_services()
    owner, _ = svc.users.create_profile("sub-owner", "owner")
    guest, _ = svc.users.create_profile("sub-guest", "guest")
    ses = Mock()
    lookup = Mock(return_value="owner@example.com")
    executor = InlineExecutor()
    dispatcher = NotificationDispatcher(svc.users, lookup, ses, "noreply@example.com", executor)
    return dispatcher, ses, lookup, executor, owner, guest


def test_excerpt_cuts_long_text():
    assert excerpt("x" * 120, 100) == "x" * 100 + "..."
    assert excerpt("short", 100) == "short"
    assert excerpt(None, 100) == ""


def test_comment_notification_sent_to_owner(env):
    dispatcher, ses, lookup, executor, owner, guest = env

    assert dispatcher.notify_comment(owner["id"], guest["id"], "great post", "d" * 150) is True

    lookup.assert_called_once_with("sub-owner")
    ses.send_email.assert_called_once()
    kwargs = ses.send_email.call_args.kwargs
    assert kwargs["Source"] == "noreply@example.com"
    assert kwargs["Destination"] == {"ToAddresses": ["owner@example.com"]}
    assert kwargs["Message"]["Subject"]["Data"] == "guest commented on your post"
    body = kwargs["Message"]["Body"]["Text"]["Data"]
    assert "d" * 100 + "..." in body
    assert "great post" in body
    assert len(executor.submitted) == 1


def test_self_comment_is_suppressed(env):
    dispatcher, ses, _, executor, owner, _ = env
    assert dispatcher.notify_comment(owner["id"], owner["id"], "me", "post") is False
    assert executor.submitted == []
    ses.send_email.assert_not_called()


def test_stored_email_skips_provider_lookup():
    svc = make_services()
    owner, _ = svc.users.create_profile("sub-owner", "owner", email="stored@example.com")
    guest, _ = svc.users.create_profile("sub-guest", "guest")
    ses, lookup = Mock(), Mock()
    dispatcher = NotificationDispatcher(svc.users, lookup, ses, "noreply@example.com", InlineExecutor())

    dispatcher.notify_like(owner["id"], guest["id"], "post")

    lookup.assert_not_called()
    assert ses.send_email.call_args.kwargs["Destination"] == {"ToAddresses": ["stored@example.com"]}
    assert ses.send_email.call_args.kwargs["Message"]["Subject"]["Data"] == "guest liked your post"


def test_delivery_failure_is_swallowed(env):
    dispatcher, ses, _, _, owner, guest = env
    ses.send_email.side_effect = RuntimeError("ses down")
    assert dispatcher.notify_comment(owner["id"], guest["id"], "hi", "post") is True


def test_missing_email_or_sender_drops_notification(env):
    dispatcher, ses, lookup, _, owner, guest = env
    lookup.return_value = None
    dispatcher.notify_comment(owner["id"], guest["id"], "hi", "post")
    ses.send_email.assert_not_called()

    dispatcher.ses = None
    lookup.return_value = "owner@example.com"
    dispatcher.notify_comment(owner["id"], guest["id"], "hi", "post")
    ses.send_email.assert_not_called()


def test_comment_ledger_triggers_exactly_one_email():
    ses = Mock()
    svc = make_services()
    notifier = NotificationDispatcher(svc.users, lambda sub: f"{sub}@example.com", ses, "noreply@example.com", InlineExecutor())
    svc.comments.notifier = notifier
    owner, _ = svc.users.create_profile("sub-owner", "owner")
    guest, _ = svc.users.create_profile("sub-guest", "guest")
    post = svc.posts.create_post(owner["id"], "post")

    svc.comments.create(post["id"], guest["id"], "from guest")
    svc.comments.create(post["id"], owner["id"], "from owner")

    assert ses.send_email.call_count == 1
    assert ses.send_email.call_args.kwargs["Destination"] == {"ToAddresses": ["sub-owner@example.com"]}
