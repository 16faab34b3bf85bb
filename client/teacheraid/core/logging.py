import logging
import re
import sys
from typing import TextIO

# Log domains: session store, adaptation calls, profile analysis, audio playback.
DOMAIN_SESSION = "session"
DOMAIN_ADAPTATION = "adaptation"
DOMAIN_ANALYSIS = "analysis"
DOMAIN_AUDIO = "audio"

LOG_FORMAT = "%(asctime)s | %(levelname)s | [%(domain)s] | %(name)s | %(message)s"


def get_domain_logger(name: str, domain: str) -> logging.LoggerAdapter[logging.Logger]:
    """Logger that stamps every record with its domain (filter on `[adaptation]`, `[audio]`, ...)."""
    return logging.LoggerAdapter(logging.getLogger(name), {"domain": domain})


class DomainDefaultFilter(logging.Filter):
    """Records from third-party loggers have no domain; label them so the format never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "domain"):
            record.domain = "lib"  # type: ignore[attr-defined]
        return True


# What this client can leak into a log line: the Gemini key (header, query string or bare)
# and base64 speech payloads echoed back in provider error bodies.
_GEMINI_KEY = re.compile(r"AIza[0-9A-Za-z_\-]{20,}")
_KEY_FIELD = re.compile(r"(?i)((?:x-goog-api-key|gemini_api_key|api[_-]?key)[\"']?\s*[=:]\s*[\"']?)([^\s\"',;&]+)")
_KEY_QUERY = re.compile(r"(?i)([?&]key=)([^\s&\"']+)")
_INLINE_AUDIO = re.compile(r"(\"data\"\s*:\s*\")([A-Za-z0-9+/=]{256,})(\")")


def redact_secrets(message: str) -> str:
    text = str(message or "")
    text = _INLINE_AUDIO.sub(lambda m: f"{m.group(1)}<{len(m.group(2))} base64 chars>{m.group(3)}", text)
    text = _KEY_FIELD.sub(r"\1[REDACTED]", text)
    text = _KEY_QUERY.sub(r"\1[REDACTED]", text)
    return _GEMINI_KEY.sub("[REDACTED]", text)


class SecretRedactionFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact_secrets(record.getMessage())
        record.args = ()
        return True


def configure_logging(level: str = "INFO", stream: TextIO | None = None) -> logging.Handler:
    """Send package and library logs to stderr with domain labels and secrets masked.

    stdout stays free for CLI output.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(DomainDefaultFilter())
    handler.addFilter(SecretRedactionFilter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)

    # httpx logs full request URLs at INFO.
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return handler
