import threading
import requests
from copytrader.infrastructure import discord_client
from copytrader.infrastructure.discord_client import DiscordNotifier


class _Response:
    def __init__(self, status=204):
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


def test_no_webhook_is_noop(make_closed_trade):
    assert DiscordNotifier(None).notify_closed_trade(make_closed_trade(1, "50")) is False


def test_format_closed_trade(make_closed_trade):
    msg = DiscordNotifier.format_closed_trade(make_closed_trade(3, "-25"))
    assert "**Trade #3 closed (LOSS)**" in msg
    assert "P&L: $-25.00 (-2.50%)" in msg
    assert "Held 120s" in msg


def test_send_message_posts_payload(monkeypatch):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        return _Response()

    monkeypatch.setattr(discord_client.requests, "post", fake_post)
    assert DiscordNotifier("https://discord.test/hook").send_message("hello")
    assert calls == [("https://discord.test/hook", {"content": "hello", "username": "Copy Trader Bot"})]


def test_send_message_retries_then_gives_up(monkeypatch):
    attempts = []

    def fake_post(url, json=None, timeout=None):
        attempts.append(url)
        return _Response(status=500)

    monkeypatch.setattr(discord_client.requests, "post", fake_post)
    assert DiscordNotifier("https://discord.test/hook", max_retries=3).send_message("hello") is False
    assert len(attempts) == 3


def test_notify_in_background_does_not_block_caller(monkeypatch, make_closed_trade):
    release = threading.Event()
    calls = []

    def slow_post(url, json=None, timeout=None):
        release.wait(5)
        calls.append(json["content"])
        return _Response()

    monkeypatch.setattr(discord_client.requests, "post", slow_post)
    thread = DiscordNotifier("https://discord.test/hook").notify_in_background(make_closed_trade(7, "50"))

    # 呼叫端立刻拿回控制權，post 還卡在等待中
    assert thread.daemon
    assert calls == []

    release.set()
    thread.join(5)
    assert not thread.is_alive()
    assert len(calls) == 1
    assert "**Trade #7 closed (WIN)**" in calls[0]
