"""Secret redaction for log records."""

import base64
import logging
import re
from typing import Iterable, List

_MIN_SECRET_LENGTH = 4


def secret_variants(token: str) -> List[str]:
    """Return the token plus the encodings it can take on the wire."""
    if not token:
        return []
    basic = base64.b64encode(f":{token}".encode("utf-8")).decode("ascii")
    return [token, basic]


def _build_patterns(values: Iterable[str]) -> List[re.Pattern]:
    unique = {value for value in values if value and len(value) >= _MIN_SECRET_LENGTH}
    return [re.compile(re.escape(value)) for value in sorted(unique, key=len, reverse=True)]


def _apply(text: str, patterns: List[re.Pattern]) -> str:
    for pattern in patterns:
        text = pattern.sub("***", text)
    return text


def redact(text: str, secrets: Iterable[str]) -> str:
    return _apply(text, _build_patterns(secrets))


class SecretRedactingFilter(logging.Filter):
    """Logging filter that replaces registered secret values with '***'.

    Attach it to handlers rather than loggers so records propagated from
    child loggers are redacted too.
    """

    def __init__(self, secrets: Iterable[str] = ()):
        super().__init__()
        self._secrets: List[str] = []
        self._patterns: List[re.Pattern] = []
        self.add_secrets(secrets)

    def add_secrets(self, secrets: Iterable[str]):
        self._secrets.extend(secrets)
        self._patterns = _build_patterns(self._secrets)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._patterns:
            return True

        record.msg = _apply(str(record.msg), self._patterns)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    key: _apply(value, self._patterns) if isinstance(value, str) else value
                    for key, value in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    _apply(arg, self._patterns) if isinstance(arg, str) else arg
                    for arg in record.args
                )
        return True
