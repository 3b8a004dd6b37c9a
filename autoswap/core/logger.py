# /autoswap/core/logger.py
import hashlib
import hmac
import json
import logging
import os

import sentry_sdk
import structlog
from prometheus_client import Counter
from structlog.contextvars import bind_contextvars

from autoswap.core.config import settings

# --- Prometheus Metrics ---
TX_TASKS = Counter("autoswap_tx_tasks_total", "Sequencer tasks by terminal outcome", ["outcome"])
TX_ERRORS = Counter("autoswap_tx_errors_total", "Classified transaction failures", ["kind"])
NONCE_FETCHES = Counter("autoswap_nonce_fetches_total", "Nonce reads from the chain")
NONCE_RESETS = Counter("autoswap_nonce_resets_total", "Times the cached nonce was invalidated")
CYCLES = Counter("autoswap_cycles_total", "Swap cycles by pair and outcome", ["pair", "outcome"])
NOTIFICATIONS = Counter("autoswap_notifications_total", "Notification attempts", ["outcome"])

SIGNING_KEY = (
    settings.LOG_SIGNING_KEY.get_secret_value().encode()
    if settings.LOG_SIGNING_KEY
    else b"insecure"
)

AUDIT_FILE = os.path.join(settings.SESSION_DIR, "audit.log")


def sign_and_append(logger, method_name: str, event_dict: dict) -> dict:
    """Structlog processor: HMAC-signs each event and appends it to the audit log.

    The line format is ``<json payload>|<hex signature>``; the signature is also
    attached to the event under ``signature``.
    """
    payload = json.dumps(event_dict, sort_keys=True, default=str)
    sig = hmac.new(SIGNING_KEY, payload.encode(), hashlib.sha256).hexdigest()

    audit_file = str(AUDIT_FILE)
    os.makedirs(os.path.dirname(audit_file), exist_ok=True)
    with open(audit_file, "a", encoding="utf-8") as f:
        f.write(payload + "|" + sig + "\n")

    event_dict["signature"] = sig
    return event_dict


# Context and metadata added to every event before it is signed.
EVENT_ENRICHERS = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.dev.set_exc_info,
    structlog.processors.format_exc_info,
]


def configure_logging():
    """Sentry (only with a DSN) plus one signed JSON line per event on stdout."""
    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN.get_secret_value(),
            environment=settings.NETWORK_NAME,
            traces_sample_rate=1.0,
        )

    min_level = logging.getLevelName(settings.LOG_LEVEL.upper())
    structlog.configure(
        processors=[*EVENT_ENRICHERS, sign_and_append, structlog.processors.JSONRenderer(sort_keys=True)],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)


def bind_session(session_id: str):
    bind_contextvars(session_id=session_id)


configure_logging()
log = get_logger("AutoSwap.System")
