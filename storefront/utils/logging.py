# storefront/utils/logging.py
import datetime
import json
import logging
import re

from storefront.utils.settings import LOG_LEVEL, LOG_JSON

_CARD_RE = re.compile(r"\b(?:\d[ -]?){12,19}\b")


class JSONFormatter(logging.Formatter):
    """
    JSON log lines, with payment credentials scrubbed.
    Structured (dict) messages are redacted key by key, free text has
    anything that looks like a card number masked.
    """

    SENSITIVE_KEYS = {
        "password", "token", "secret", "authorization",
        "card_number", "cvv", "expiry_date", "paypal_token",
        "bank_account_number", "bank_routing_number",
    }

    def _scrub(self, data):
        if isinstance(data, dict):
            return {
                k: self._scrub(v) if str(k).lower() not in self.SENSITIVE_KEYS else "***REDACTED***"
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [self._scrub(i) for i in data]
        return data

    def format(self, record):
        if isinstance(record.msg, dict):
            record.msg = self._scrub(record.msg)
        if isinstance(record.args, dict):
            record.args = self._scrub(record.args)

        log_record = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "lvl": record.levelname,
            "msg": _CARD_RE.sub("****", record.getMessage()),
            "logger": record.name,
            "line": record.lineno,
        }

        for attr in ("order_id", "user_id", "product_id"):
            if hasattr(record, attr):
                log_record[attr] = getattr(record, attr)

        if record.exc_info:
            log_record["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


_configured = False


def _configure_root():
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler()
    if LOG_JSON:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )

    root = logging.getLogger("storefront")
    root.addHandler(handler)
    root.setLevel(LOG_LEVEL)
    root.propagate = True
    _configured = True


def get_logger(name: str) -> logging.Logger:
    _configure_root()
    return logging.getLogger(name)
