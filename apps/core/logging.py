"""
Structured logging for Fiesta.

JSON and plain formatters that mask PII, plus SecurityLogger for
authorization and authentication events.
"""
import json
import logging
import re
import traceback
from django.utils import timezone
import sentry_sdk


class PIIMasker:
    """
    Utility class to mask sensitive PII data in logs.
    """

    PHONE_PATTERN = re.compile(r'\+?\d{10,15}')
    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
    SECRET_PATTERN = re.compile(r'(token|secret|password|authorization)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', re.IGNORECASE)
    JWT_PATTERN = re.compile(r'eyJ[a-zA-Z0-9_\-]+\.eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+')

    SENSITIVE_FIELDS = {
        'password', 'password_hash', 'passwd',
        'token', 'access_token', 'refresh_token', 'authorization',
        'secret', 'secret_key',
        'phone', 'contact_phone',
    }

    @classmethod
    def mask_email(cls, text):
        """Mask email addresses in text, keeping the first character and domain."""
        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            if len(username) > 1:
                username = username[0] + '*' * (len(username) - 1)
            return f"{username}@{domain}"
        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        text = cls.JWT_PATTERN.sub('[REDACTED_JWT]', text)
        text = cls.SECRET_PATTERN.sub(r'\1: ********', text)
        text = cls.PHONE_PATTERN.sub(lambda m: m.group(0)[:3] + '*' * (len(m.group(0)) - 3), text)
        text = cls.mask_email(text)
        return text

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS:
                masked[key] = '********' if value else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict) else cls.mask_text(item)
                    for item in value
                ]
            else:
                masked[key] = cls.mask_text(value)
        return masked


# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
    'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'taskName', 'request_id', 'venue_id',
])


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.
    Includes request_id and venue_id from extra fields if available.
    Automatically masks sensitive PII data.
    """

    def format(self, record):
        log_data = {
            'timestamp': timezone.now().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if getattr(record, 'request_id', None):
            log_data['request_id'] = record.request_id

        if getattr(record, 'venue_id', None):
            log_data['venue_id'] = str(record.venue_id)

        if record.exc_info and record.exc_info[0]:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [PIIMasker.mask_text(line) for line in traceback.format_exception(*record.exc_info)],
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith('_'):
                continue
            if isinstance(value, dict):
                value = PIIMasker.mask_dict(value)
            elif isinstance(value, str):
                value = PIIMasker.mask_text(value)
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class MaskingFormatter(logging.Formatter):
    """Plain-text formatter that runs the final message through PIIMasker."""

    def format(self, record):
        return PIIMasker.mask_text(super().format(record))


class SecurityLogger:
    """
    Centralized security event logging.

    Authorization denials, failed logins and owner-protection violations
    are written to the 'security' logger with structured context. Critical
    events are also sent to Sentry for alerting.
    """

    CRITICAL_EVENTS = {
        'owner_protection_violation',
        'cross_venue_access',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Args:
            event_type: Type of security event (e.g., 'permission_denied')
            level: Log level ('info', 'warning', 'error', 'critical')
            **context: Additional context data (user_id, venue_id, permission, ...)
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'timestamp': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(
            f"Security event: {event_type}",
            extra=log_data
        )

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_failed_login(email: str, ip_address: str, reason: str = None):
        """Log a failed login attempt."""
        SecurityLogger.log_event(
            'failed_login',
            level='warning',
            email=email,
            ip_address=ip_address,
            reason=reason
        )

    @staticmethod
    def log_permission_denied(principal, decision, ip_address: str = None, path: str = None):
        """
        Log an authorization denial together with its decision reason.

        Args:
            principal: Principal snapshot (or None for anonymous requests)
            decision: Decision returned by RBACService.authorize
            ip_address: IP address of the request
            path: Request path
        """
        event_type = 'cross_venue_access' if decision.reason == 'cross_venue' else 'permission_denied'
        SecurityLogger.log_event(
            event_type,
            level='warning',
            user_id=str(principal.user_id) if principal else None,
            venue_id=str(principal.venue_id) if principal and principal.venue_id else None,
            permission=decision.permission,
            reason=decision.reason,
            ip_address=ip_address,
            path=path
        )

    @staticmethod
    def log_owner_protection_violation(actor, target, attempted: str):
        """Log an attempt to rebind or hand out an owner role without being an owner."""
        SecurityLogger.log_event(
            'owner_protection_violation',
            level='error',
            actor_id=str(actor.id) if actor else None,
            target_id=str(target.id) if target else None,
            venue_id=str(target.venue_id) if target and target.venue_id else None,
            attempted=attempted
        )
