"""Structured logging configuration using structlog.

Provides JSON output for unattended runs and human-readable console output
for interactive use. All logging throughout the project should use
get_logger() instead of print().

Portal cookies, the WeCom secret and access tokens are masked by
redact_secrets before any renderer sees an event.
"""

import logging
import re
import sys

import structlog

REDACTED = "***"

# Event keys whose values are credentials
SECRET_KEYS: frozenset[str] = frozenset(
    {"cookie", "secret", "corpsecret", "access_token", "token"}
)

# Credentials embedded in free text (URLs, error messages, raw replies)
_SECRET_PATTERNS = (
    re.compile(r"((?:corpsecret|access_token)=)[^&\s'\"]+"),
    re.compile(r"(remember_student_\w*=)[^;\s'\"]+"),
    re.compile(r"""(['"]access_token['"]\s*:\s*['"])[^'"]+"""),
)


def scrub(text: str) -> str:
    """Mask credential values embedded in a string."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(rf"\g<1>{REDACTED}", text)
    return text


def redact_secrets(logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor masking credentials in keys and string values."""
    for key, value in list(event_dict.items()):
        if key.lower() in SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            event_dict[key] = scrub(value)
    return event_dict


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog with appropriate processors and output format.

    Args:
        json_output: If True, output JSON. If False, console format.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # requests and urllib3 log through stdlib; keep them on stdout at the same level
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )
    logging.getLogger().handlers = []
    logging.getLogger().addHandler(logging.StreamHandler(sys.stdout))
    # urllib3 debug lines print full request URLs, query strings included
    logging.getLogger("urllib3").setLevel(max(numeric_level, logging.INFO))


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance bound with the module name.

    Args:
        name: Logger name (typically __name__ from calling module).

    Returns:
        Configured structlog logger with module name context.
    """
    return structlog.get_logger(name)
