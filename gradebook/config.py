"""
Configuration settings for the gradebook app.

These values can be overridden in Django settings by prefixing with GRADEBOOK_.
For example, to change the passing average:
    GRADEBOOK_PASSING_AVERAGE = Decimal('12.00')

All configuration values are lazily loaded to avoid Django setup issues.
Performance band thresholds are fixed in classification.py and are not
listed here.
"""
from decimal import Decimal


def _get_setting(name, default):
    """Get a gradebook setting from Django settings or use default."""
    from django.conf import settings
    return getattr(settings, f'GRADEBOOK_{name}', default)


# Define defaults as constants for direct use when Django settings are not needed
_DEFAULTS = {
    # Mark domain (marks are out of 20)
    'MIN_MARK': Decimal('0'),
    'MAX_MARK': Decimal('20'),

    # Promotion / follow-up thresholds
    'PASSING_AVERAGE': Decimal('10.00'),
    'AT_RISK_THRESHOLD': Decimal('10.00'),

    # Report card display
    'REPORT_DECIMAL_PLACES': 2,

    # Analytics and display limits
    'TOP_PERFORMERS_LIMIT': 5,

    # Celery task settings
    'TASK_MAX_RETRIES': 3,
    'TASK_RETRY_DELAY': 60,  # seconds
}


class _ConfigProxy:
    """
    Lazy configuration proxy that loads settings only when accessed.
    This avoids Django setup issues during module import.
    """

    def __getattr__(self, name):
        if name in _DEFAULTS:
            return _get_setting(name, _DEFAULTS[name])
        raise AttributeError(f"Unknown config setting: {name}")


# Module-level proxy object for attribute access
_config = _ConfigProxy()


def __getattr__(name):
    """Enable module-level attribute access via the config proxy."""
    return getattr(_config, name)
