"""
Data-access clients for the school backend.

The backend owns persistence and its JSON wire format; these clients turn
its documents into read-only records and forward writes.
"""

from .base import BaseBackendClient, BackendError
from .rest import RestBackendClient


def get_backend_client(config=None):
    """
    Factory function to get the configured backend client.

    Args:
        config: dict overriding settings.SCHOOL_BACKEND

    Returns:
        BaseBackendClient subclass instance
    """
    if config is None:
        from django.conf import settings
        config = getattr(settings, 'SCHOOL_BACKEND', {})

    client_name = config.get('CLIENT', 'REST')

    clients = {
        'REST': RestBackendClient,
    }

    client_class = clients.get(client_name)
    if not client_class:
        raise ValueError(f"Unsupported backend client: {client_name}")

    return client_class(config)


__all__ = [
    'BaseBackendClient',
    'BackendError',
    'RestBackendClient',
    'get_backend_client',
]
