"""
Configuration settings for the finance app.

These values can be overridden in Django settings by prefixing with FINANCE_.
"""


def _get_setting(name, default):
    """Get a finance setting from Django settings or use default."""
    from django.conf import settings
    return getattr(settings, f'FINANCE_{name}', default)


_DEFAULTS = {
    # Fee type counted by the tuition-only view
    'TUITION_FEE_TYPE': 'Tuition',

    # How long a class's fee amount is cached (seconds)
    'FEE_DUE_CACHE_TIMEOUT': 300,

    'CURRENCY': 'FCFA',
}


class _ConfigProxy:
    """Lazy configuration proxy that loads settings only when accessed."""

    def __getattr__(self, name):
        if name in _DEFAULTS:
            return _get_setting(name, _DEFAULTS[name])
        raise AttributeError(f"Unknown config setting: {name}")


_config = _ConfigProxy()


def __getattr__(name):
    """Enable module-level attribute access via the config proxy."""
    return getattr(_config, name)
