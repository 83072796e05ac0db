import argparse
import json
from datetime import datetime, timezone
from pathlib import Path

import yaml
from loguru import logger

from alertcore.config import LOG_LEVEL, get_bot_name, get_bot_version, get_alert_timezone
from alertcore.utils.logging import setup_logging


def _load_payload(path: str) -> dict:
    """Read a rule submission from a YAML or JSON file."""
    text = Path(path).read_text(encoding="utf-8")
    if path.endswith(".json"):
        return json.loads(text)
    return yaml.safe_load(text) or {}


def main(argv=None):
    parser = argparse.ArgumentParser(description="Alert rule engine")
    parser.add_argument("--init-db", action="store_true", help="Initialize database tables")
    parser.add_argument("--list-indicators", action="store_true", help="Print the indicator catalog")
    parser.add_argument("--submit", metavar="FILE", help="Validate and store a rule (YAML/JSON payload)")
    parser.add_argument("--evaluate", metavar="RULE_ID", help="Push one evaluation decision for a rule")
    parser.add_argument("--not-satisfied", action="store_true", help="With --evaluate: condition not satisfied")
    parser.add_argument("--ping", action="store_true", help="Send test message to Telegram")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level (default from LOG_LEVEL)")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    from alertcore.rules.engine import get_alert_engine

    if args.ping:
        from alertcore.notif.templates import template_ping
        from alertcore.telegram_bot import TelegramSender

        msg = template_ping(get_bot_name(), get_bot_version(), tz_name=get_alert_timezone())
        result = TelegramSender(tz_name=get_alert_timezone()).send_message(msg)
        logger.info(f"Ping sent? {result.ok}")
        return 0 if result.ok else 1

    engine = get_alert_engine()

    if args.init_db:
        logger.info("Database initialized")
        return 0

    if args.list_indicators:
        print(json.dumps(engine.list_indicators(), indent=2))
        return 0

    if args.submit:
        result = engine.submit_rule(_load_payload(args.submit))
        if not result.ok:
            print(json.dumps({"errors": result.errors}, indent=2))
            return 1
        for warning in result.warnings:
            logger.warning(f"{warning.field}: {warning.message}")
        print(json.dumps({"rule_id": result.rule_id}))
        return 0

    if args.evaluate:
        now = datetime.now(timezone.utc)
        result = engine.process_evaluation(args.evaluate, not args.not_satisfied, now)
        output = {"rule_id": result.rule_id, "outcome": result.outcome.value}
        if result.report is not None:
            output["delivery"] = result.report.to_dict()["results"]
        print(json.dumps(output, indent=2))
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
