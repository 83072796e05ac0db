"""Tests for Telegram, email and webhook channel senders."""
from unittest.mock import MagicMock, AsyncMock, patch

import pytest
import requests

from alertcore.notif.router import DeliveryStatus, FiringContext
from alertcore.notif.senders import EmailSender, WebhookSender, build_router
from alertcore.rules.rule_defs import DeliveryChannel
from alertcore.rules.validator import validate_submission
from alertcore.telegram_bot import TelegramSender


@pytest.fixture
def context(catalog, price_payload, t0) -> FiringContext:
    rule = validate_submission(price_payload, catalog).unwrap()
    return FiringContext.from_rule(rule, t0, observed_value=70100.0)


class TestWebhookSender:
    """HTTP POST delivery."""

    def test_posts_context_json(self, context):
        session = MagicMock()
        session.post.return_value.status_code = 200
        sender = WebhookSender("https://hooks.example.com/a", timeout_seconds=3, session=session)

        result = sender(context.rule_id, context)

        assert result.ok
        args, kwargs = session.post.call_args
        assert args[0] == "https://hooks.example.com/a"
        assert kwargs["timeout"] == 3
        assert kwargs["json"]["event"] == "alert.fired"
        assert kwargs["json"]["rule_id"] == context.rule_id
        assert kwargs["json"]["comparison"] == "ABOVE"

    def test_http_error_is_failure(self, context):
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        result = WebhookSender("https://hooks.example.com/a", session=session)(context.rule_id, context)
        assert result.status is DeliveryStatus.FAILED
        assert "500" in result.reason

    def test_connection_error_is_failure(self, context):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        result = WebhookSender("https://hooks.example.com/a", session=session)(context.rule_id, context)
        assert not result.ok

    def test_missing_url(self, context):
        result = WebhookSender("")(context.rule_id, context)
        assert result.reason == "webhook url not configured"


class TestEmailSender:
    """SMTP delivery."""

    def test_dry_run_without_host(self, context):
        sender = EmailSender(host="", to_address="ops@example.com")
        assert sender.dry_run
        assert sender(context.rule_id, context).ok

    def test_message_content(self, context):
        sender = EmailSender(host="smtp.example.com", to_address="ops@example.com", user="bot@example.com")
        message = sender.build_message(context)
        assert message["To"] == "ops@example.com"
        assert message["From"] == "bot@example.com"
        assert message["Subject"].startswith("[Alert] BTC/USDT")
        assert "PRICE above 70,000.00" in message.get_content()

    def test_sends_via_smtp(self, context):
        sender = EmailSender(host="smtp.example.com", port=2525, user="u", password="p", to_address="ops@example.com")
        with patch("alertcore.notif.senders.smtplib.SMTP") as smtp_cls:
            smtp = smtp_cls.return_value.__enter__.return_value
            result = sender(context.rule_id, context)

        assert result.ok
        smtp_cls.assert_called_once_with("smtp.example.com", 2525, timeout=10.0)
        smtp.login.assert_called_once_with("u", "p")
        smtp.send_message.assert_called_once()

    def test_smtp_error_is_failure(self, context):
        import smtplib

        sender = EmailSender(host="smtp.example.com", to_address="ops@example.com")
        with patch("alertcore.notif.senders.smtplib.SMTP") as smtp_cls:
            smtp_cls.return_value.__enter__.return_value.send_message.side_effect = smtplib.SMTPException("rejected")
            result = sender(context.rule_id, context)
        assert result.status is DeliveryStatus.FAILED
        assert result.reason == "rejected"


class TestTelegramSender:
    """Telegram delivery."""

    def test_dry_run_without_token(self, context):
        sender = TelegramSender(token="", chat_id="")
        assert sender.dry_run
        assert sender(context.rule_id, context).ok

    def test_sends_message(self, context):
        sender = TelegramSender(token="123:abc", chat_id="-100")
        with patch("alertcore.telegram_bot._send_message_async", new_callable=AsyncMock) as send:
            result = sender(context.rule_id, context)
        assert result.ok
        token, text, chat_id = send.call_args.args
        assert (token, chat_id) == ("123:abc", "-100")
        assert "BTC/USDT" in text

    def test_send_error_is_failure(self, context):
        sender = TelegramSender(token="123:abc", chat_id="-100")
        with patch("alertcore.telegram_bot._send_message_async", new_callable=AsyncMock) as send:
            send.side_effect = RuntimeError("Forbidden: bot was kicked")
            result = sender(context.rule_id, context)
        assert result.status is DeliveryStatus.FAILED
        assert "kicked" in result.reason

    @pytest.mark.asyncio
    async def test_async_send(self, context):
        sender = TelegramSender(token="123:abc", chat_id="-100")
        with patch("alertcore.telegram_bot._send_message_async", new_callable=AsyncMock) as send:
            result = await sender.send_alert_async(context.rule_id, context)
        assert result.ok
        send.assert_awaited_once()


    @pytest.mark.asyncio
    async def test_sync_send_inside_running_loop_reports_failure(self, context):
        """The sync path waits for delivery even when a loop is already running."""
        sender = TelegramSender(token="123:abc", chat_id="-100")
        with patch("alertcore.telegram_bot._send_message_async", new_callable=AsyncMock) as send:
            send.side_effect = RuntimeError("telegram down")
            result = sender(context.rule_id, context)
        assert result.status is DeliveryStatus.FAILED
        assert result.reason == "telegram down"

    @pytest.mark.asyncio
    async def test_sync_send_inside_running_loop(self, context):
        sender = TelegramSender(token="123:abc", chat_id="-100")
        with patch("alertcore.telegram_bot._send_message_async", new_callable=AsyncMock) as send:
            result = sender(context.rule_id, context)
        assert result.ok
        send.assert_awaited_once()


class TestBuildRouter:
    """Router wiring from config."""

    def test_all_channels_registered(self, catalog, price_payload, t0):
        with patch("alertcore.telegram_bot.BOT_TOKEN", ""):
            router = build_router({
                'telegram': {'chat_id': ''},
                'email': {'to': ''},
                'webhook': {'url': '', 'timeout_seconds': 5},
            })
        rule = validate_submission(
            dict(price_payload, deliveryChannels=["telegram", "email", "webhook"]), catalog
        ).unwrap()
        report = router.dispatch(rule, FiringContext.from_rule(rule, t0))

        assert set(report.results) == set(DeliveryChannel)
        assert report.results[DeliveryChannel.WEBHOOK].reason == "webhook url not configured"
