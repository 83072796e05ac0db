"""
Email and webhook delivery channels, plus the router factory wiring all
channel senders from config.
"""
import smtplib
from email.message import EmailMessage
from typing import Any, Dict, Optional

import requests
from loguru import logger

from alertcore.notif.router import DeliveryResult, DeliveryRouter, FiringContext
from alertcore.notif.templates import template_email_subject, template_rule_fired
from alertcore.rules.rule_defs import DeliveryChannel


class WebhookSender:
    """POSTs the firing context as JSON. Any non-2xx answer is a failure."""

    def __init__(self, url: str, timeout_seconds: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def __call__(self, rule_id: str, context: FiringContext) -> DeliveryResult:
        if not self.url:
            return DeliveryResult.failed("webhook url not configured")

        payload = {"event": "alert.fired", **context.to_dict()}
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Webhook delivery failed for rule {rule_id}: {e}")
            return DeliveryResult.failed(str(e))

        logger.debug(f"Webhook delivered for rule {rule_id} ({response.status_code})")
        return DeliveryResult.sent()


class EmailSender:
    """
    SMTP delivery channel.
    Without an SMTP host or recipient it runs in dry-run mode (logged, reported sent).
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: str = "",
        password: str = "",
        to_address: str = "",
        from_address: Optional[str] = None,
        tz_name: str = "UTC",
        timeout_seconds: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.to_address = to_address
        self.from_address = from_address or user or "alerts@localhost"
        self.tz_name = tz_name
        self.timeout_seconds = timeout_seconds

    @property
    def dry_run(self) -> bool:
        return not self.host or not self.to_address

    def build_message(self, context: FiringContext) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = template_email_subject(context)
        message["From"] = self.from_address
        message["To"] = self.to_address
        message.set_content(template_rule_fired(context, self.tz_name))
        return message

    def __call__(self, rule_id: str, context: FiringContext) -> DeliveryResult:
        message = self.build_message(context)
        if self.dry_run:
            logger.info(f"[dry-run] email -> {message['Subject']}")
            return DeliveryResult.sent()

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as smtp:
                smtp.starttls()
                if self.user:
                    smtp.login(self.user, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"Email delivery failed for rule {rule_id}: {e}")
            return DeliveryResult.failed(str(e))

        return DeliveryResult.sent()


def build_router(delivery_config: Optional[Dict[str, Any]] = None, tz_name: str = "UTC") -> DeliveryRouter:
    """
    Build a router with all three channel senders.

    Args:
        delivery_config: "delivery" config section (see get_delivery_config)
        tz_name: Timezone for firing timestamps in messages
    """
    from alertcore import config
    from alertcore.telegram_bot import TelegramSender

    delivery_config = delivery_config or {}
    telegram_cfg = delivery_config.get('telegram') or {}
    email_cfg = delivery_config.get('email') or {}
    webhook_cfg = delivery_config.get('webhook') or {}

    router = DeliveryRouter()
    router.register(
        DeliveryChannel.TELEGRAM,
        TelegramSender(chat_id=telegram_cfg.get('chat_id') or config.CHANNEL_CHAT_ID, tz_name=tz_name),
    )
    router.register(
        DeliveryChannel.EMAIL,
        EmailSender(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            user=config.SMTP_USER,
            password=config.SMTP_PASSWORD,
            to_address=email_cfg.get('to') or config.ALERT_EMAIL_TO,
            tz_name=tz_name,
        ),
    )
    router.register(
        DeliveryChannel.WEBHOOK,
        WebhookSender(
            url=webhook_cfg.get('url', ''),
            timeout_seconds=float(webhook_cfg.get('timeout_seconds', 10)),
        ),
    )
    return router
