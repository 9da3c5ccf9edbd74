"""JSON structured logging with mandatory fields and PII redaction."""
import json
import logging
import re
import sys
import threading
from datetime import UTC, datetime
from typing import Optional

from backend.core.config import settings

# Thread-local storage for context
_context = threading.local()

_RESERVED_ATTRS = frozenset(
    (
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
        "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
        "created", "msecs", "relativeCreated", "thread", "threadName",
        "processName", "process", "message", "taskName",
    )
)

# Identifiers that look like phone numbers to the redaction patterns
_IDENTIFIER_KEYS = frozenset(
    ("payment_id", "installment_id", "external_reference", "trace_id", "scan_id", "idempotency_key")
)


class JSONFormatter(logging.Formatter):
    """JSON formatter with mandatory fields and PII redaction."""

    def __init__(self):
        super().__init__()
        # CPF: 000.000.000-00 or 11 bare digits
        self.cpf_pattern = re.compile(r'(\b\d{3}\.?\d{3}\.?\d{3}-?\d{2}\b)')
        self.email_pattern = re.compile(r'(\b\S+@\S+\.\S+\b)')
        # BR phone: optional country code, DDD, optional 9th digit, 8 digits
        self.phone_pattern = re.compile(r'(\+?\d{0,3}[\s-]?\(?\d{2}\)?[\s-]?9?\d{4}[\s-]?\d{4}\b)')

    def _redact_pii(self, text: str) -> str:
        """Redact PII from text."""
        if not isinstance(text, str):
            return text

        text = self.email_pattern.sub(self._mask_email, text)
        text = self.cpf_pattern.sub(self._mask_cpf, text)
        text = self.phone_pattern.sub(self._mask_phone, text)

        return text

    def _mask_cpf(self, match) -> str:
        """Mask CPF: keep the check digits only."""
        cpf = match.group(1)
        return "***.***.***-" + re.sub(r"\D", "", cpf)[-2:]

    def _mask_email(self, match) -> str:
        """Mask email: show first char of user, mask domain."""
        email = match.group(1)
        if "@" not in email:
            return email
        user, domain = email.split("@", 1)
        if len(user) <= 1:
            masked_user = "*"
        else:
            masked_user = user[0] + "*" * (len(user) - 1)
        return f"{masked_user}@{domain}"

    def _mask_phone(self, match) -> str:
        """Mask phone: show first 2 chars, mask the rest."""
        phone = match.group(1)
        if len(phone) <= 2:
            return "*" * len(phone)
        return phone[:2] + "*" * (len(phone) - 2)

    def format(self, record):
        """Format log record as JSON with mandatory fields and PII redaction."""
        trace_id = getattr(_context, 'trace_id', None) or 'unknown'

        message = record.getMessage()

        log_entry = {
            'trace_id': trace_id,
            'level': record.levelname.lower(),
            'logger': record.name,
            'msg': self._redact_pii(message),
            'ts_utc': datetime.now(UTC).isoformat().replace('+00:00', 'Z'),
        }

        if record.exc_info:
            log_entry['exc_info'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if isinstance(value, str) and key not in _IDENTIFIER_KEYS:
                value = self._redact_pii(value)
            log_entry[key] = value

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def set_trace_id(trace_id: Optional[str]) -> None:
    """Set trace ID for current thread context."""
    _context.trace_id = trace_id


def get_trace_id() -> Optional[str]:
    """Return the trace ID bound to the current thread, if any."""
    return getattr(_context, 'trace_id', None)


def init_logging() -> None:
    """Initialize JSON logging with mandatory fields."""
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)

    # httpx logs full request URLs (payment ids, instance ids) at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get logger with JSON formatting."""
    return logging.getLogger(name)


# Convenience logger
logger = get_logger(__name__)
