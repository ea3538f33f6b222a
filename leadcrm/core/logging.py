"""
Secure logging for the LeadCRM API.

Masks phone numbers, OTPs, PINs and bearer tokens before records reach a
handler, and provides a dedicated logger for security events.
"""

import logging
import re
import json
from typing import Any, Dict
from datetime import datetime, timezone
import hashlib


class SecureFormatter(logging.Formatter):
    """Formatter that masks sensitive values in the rendered record."""

    SENSITIVE_PATTERNS = [
        # PIN / OTP values
        (r'(?i)(pin|otp)(["\']?\s*[:=]\s*["\']?)(\d{4,6})', r'\1\2***'),

        # JWT tokens
        (r'(?i)(token|jwt)(["\']?\s*[:=]\s*["\']?)([A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+)', r'\1\2***'),
        (r'(?i)bearer\s+([A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+)', r'Bearer ***'),

        # Secrets
        (r'(?i)(secret|api[_-]?key)(["\']?\s*[:=]\s*["\']?)([^"\',\s]+)', r'\1\2***'),

        # 10-digit phone numbers keep their last four digits
        (r'\b(\d{6})(\d{4})\b', r'******\2'),
    ]

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            formatted = re.sub(pattern, replacement, formatted)
        return formatted


class SecurityLogger:
    """Logger for security events (logins, OTPs, permission denials)."""

    def __init__(self):
        self.logger = logging.getLogger("leadcrm.security")
        self.logger.setLevel(logging.INFO)

        if not self.logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(
                SecureFormatter(
                    fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
                )
            )
            self.logger.addHandler(console_handler)
        self.logger.propagate = False

    def _emit(self, level: int, label: str, event_data: Dict[str, Any]):
        event_data = sanitize_log_data(event_data)
        event_data["timestamp"] = datetime.now(timezone.utc).isoformat()
        self.logger.log(level, f"{label}: {json.dumps(event_data, default=str)}")

    def log_otp_request(self, phone: str, ip: str, throttled: bool = False):
        self._emit(
            logging.WARNING if throttled else logging.INFO,
            "OTP request",
            {
                "event_type": "otp_request",
                "phone_hash": hash_pii(phone),
                "throttled": throttled,
                "ip": ip,
            },
        )

    def log_login_attempt(self, phone: str, success: bool, ip: str, user_agent: str = ""):
        self._emit(
            logging.INFO if success else logging.WARNING,
            "Login attempt",
            {
                "event_type": "login_attempt",
                "phone_hash": hash_pii(phone),
                "success": success,
                "ip": ip,
                "user_agent": user_agent[:100],
            },
        )

    def log_suspicious_activity(self, event_type: str, details: Dict[str, Any], ip: str):
        self._emit(
            logging.WARNING,
            "Suspicious activity",
            {
                "event_type": "suspicious_activity",
                "activity": event_type,
                "details": sanitize_log_data(details),
                "ip": ip,
            },
        )

    def log_permission_denied(self, user_id: str, resource: str, action: str, ip: str):
        self._emit(
            logging.WARNING,
            "Permission denied",
            {
                "event_type": "permission_denied",
                "user_id": user_id,
                "resource": resource,
                "action": action,
                "ip": ip,
            },
        )

    def log_data_access(self, user_id: str, resource: str, action: str, record_count: int = 0):
        self._emit(
            logging.INFO,
            "Data access",
            {
                "event_type": "data_access",
                "user_id": user_id,
                "resource": resource,
                "action": action,
                "record_count": record_count,
            },
        )


SENSITIVE_KEYS = ("pin", "otp", "token", "secret", "authorization", "password")


def sanitize_log_data(data: Any) -> Any:
    """Redact sensitive keys in dict/list payloads before logging."""
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            if any(sensitive in str(key).lower() for sensitive in SENSITIVE_KEYS):
                sanitized[key] = "***"
            else:
                sanitized[key] = sanitize_log_data(value)
        return sanitized

    if isinstance(data, (list, tuple)):
        return [sanitize_log_data(item) for item in data]

    if isinstance(data, str):
        if re.match(r'^[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+$', data):
            return "***"
        return data

    return data


def hash_pii(data: str) -> str:
    """Short stable hash for correlating PII across log lines."""
    return hashlib.sha256(data.encode('utf-8')).hexdigest()[:16]


security_logger = SecurityLogger()


def setup_application_logging(level: str = "INFO"):
    """Configure the package logger once per process."""
    root_logger = logging.getLogger("leadcrm")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(isinstance(h.formatter, SecureFormatter) for h in root_logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            SecureFormatter(
                fmt='%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
            )
        )
        root_logger.addHandler(console_handler)

    # SQL statements can carry phone numbers and OTPs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return root_logger
