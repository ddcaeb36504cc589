"""
Centralized logging helpers shared by the backend apps and the companion client.

Every area of the project logs through an ``AppLogger`` so that user context and
extra data end up both in the human readable message and in the structured
``context`` attribute consumed by ``StructuredJSONFormatter``.
"""

import logging
from typing import Any, Dict, Optional, Tuple


class AppLogger:
    """Thin facade over :mod:`logging` with project specific event helpers."""

    def __init__(self, logger_name: str):
        self.name = logger_name
        self.logger = logging.getLogger(logger_name)
        self.security_logger = logging.getLogger('django.security')
        self.alerts_logger = logging.getLogger('alerts')

    def debug(self, message: str, user: Optional[Any] = None, extra_data: Optional[Dict[str, Any]] = None):
        self._log(logging.DEBUG, message, user, extra_data)

    def info(self, message: str, user: Optional[Any] = None, extra_data: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, message, user, extra_data)

    def warning(self, message: str, user: Optional[Any] = None, extra_data: Optional[Dict[str, Any]] = None):
        self._log(logging.WARNING, message, user, extra_data)

    def error(self, message: str, user: Optional[Any] = None, extra_data: Optional[Dict[str, Any]] = None):
        self._log(logging.ERROR, message, user, extra_data)

    def critical(self, message: str, user: Optional[Any] = None, extra_data: Optional[Dict[str, Any]] = None):
        """Log at CRITICAL and mirror the event on the ``alerts`` logger."""
        self._log(logging.CRITICAL, message, user, extra_data)
        self._emit(self.alerts_logger, logging.ERROR, f"CRITICAL: {message}", user, extra_data)

    def security_event(self, message: str, user: Optional[Any] = None, extra_data: Optional[Dict[str, Any]] = None):
        """Send a security relevant event to ``django.security``."""
        self._emit(self.security_logger, logging.WARNING, f"SECURITY EVENT: {message}", user, extra_data)

    def user_activity(self, action: str, user: Any, details: Optional[str] = None):
        message = f"User {getattr(user, 'email', 'unknown')} performed action: {action}"
        if details:
            message += f" - {details}"
        self.info(message, user)

    def encryption_event(self, event: str, user: Optional[Any] = None, success: bool = True):
        status = "SUCCESS" if success else "FAILURE"
        level = logging.INFO if success else logging.ERROR
        self._log(level, f"ENCRYPTION {status}: {event}", user)

    def sync_event(self, store: str, event: str, user: Optional[Any] = None,
                   success: bool = True, extra_data: Optional[Dict[str, Any]] = None):
        """Log a local/remote reconciliation step for one of the client stores."""
        status = "OK" if success else "FAILED"
        level = logging.INFO if success else logging.WARNING
        data = {'store': store}
        if extra_data:
            data.update(extra_data)
        self._log(level, f"SYNC {status}: {event}", user, data)

    def _log(self, level: int, message: str, user: Optional[Any] = None,
             extra_data: Optional[Dict[str, Any]] = None):
        self._emit(self.logger, level, message, user, extra_data)

    def _emit(self, target: logging.Logger, level: int, message: str,
              user: Optional[Any], extra_data: Optional[Dict[str, Any]]):
        formatted_message, context = self._prepare_message(message, user, extra_data)
        if context:
            target.log(level, formatted_message, extra={'context': context})
        else:
            target.log(level, formatted_message)

    def _prepare_message(self, message: str, user: Optional[Any],
                         extra_data: Optional[Dict[str, Any]]) -> Tuple[str, Dict[str, Any]]:
        return self._format_message(message, user, extra_data), self._build_context(user, extra_data)

    @staticmethod
    def _build_context(user: Optional[Any], extra_data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        context: Dict[str, Any] = {}
        if user is not None:
            context['user_email'] = getattr(user, 'email', None)
            user_identifier = getattr(user, 'id', getattr(user, 'pk', None))
            if user_identifier is not None:
                context['user_pk'] = user_identifier
        if extra_data:
            context.update(extra_data)
        return context

    @staticmethod
    def _format_message(message: str, user: Optional[Any] = None,
                        extra_data: Optional[Dict[str, Any]] = None) -> str:
        if user is not None:
            message = f"[User: {getattr(user, 'email', 'unknown')}] {message}"
        if extra_data:
            extra_info = ", ".join(f"{key}: {value}" for key, value in extra_data.items())
            message += f" | Extra: {extra_info}"
        return message


_loggers: Dict[str, AppLogger] = {}


def get_logger(area: str) -> AppLogger:
    """Return the shared ``AppLogger`` for a project area."""
    if area not in _loggers:
        _loggers[area] = AppLogger(area)
    return _loggers[area]


def get_accounts_logger():
    return get_logger('accounts')


def get_vault_logger():
    return get_logger('vault')


def get_core_logger():
    return get_logger('core')


def get_library_logger():
    return get_logger('library')


def get_tools_logger():
    return get_logger('tools')


def get_conversion_logger():
    return get_logger('conversion')


def get_client_logger():
    return get_logger('client')


def get_security_logger():
    """Logger whose regular output already lands on ``django.security``."""
    return get_logger('django.security')
