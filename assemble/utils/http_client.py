"""
Centralized HTTP client factory for the remote conversion service.

This module provides a single place to create and manage the httpx clients
used to upload documents, download converted files and compress the final
output, with consistent timeout and connection pooling configuration.

Requests are never retried: a failed remote call fails the pipeline run and
the user restarts it after remediation.
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Dict, List
from enum import Enum

import httpx

logger = logging.getLogger(__name__)


class ServiceType(Enum):
    """Service types for HTTP client configuration."""
    DEFAULT = "default"
    CONVERTAPI = "convertapi"


class HTTPClientFactory:
    """
    Centralized factory for creating and managing HTTP clients.

    Provides consistent configuration for timeouts and connection pooling.
    """

    def __init__(self):
        self._clients: Dict[ServiceType, List[httpx.AsyncClient]] = {}
        self._limits = None
        self._timeout = None

    def _get_connection_limits(self) -> httpx.Limits:
        """Get connection limits; a run talks to one host at a time."""
        if self._limits is None:
            self._limits = httpx.Limits(
                max_keepalive_connections=5,
                max_connections=10,
                keepalive_expiry=30.0
            )
        return self._limits

    def _get_timeout(self) -> httpx.Timeout:
        """Get timeout configuration from environment or defaults."""
        if self._timeout is None:
            # Empty value means no read timeout
            http_timeout_str = os.getenv('ASSEMBLE_HTTP_TIMEOUT', '')
            if not http_timeout_str.strip():
                http_timeout = None
            else:
                http_timeout = float(http_timeout_str)

            self._timeout = httpx.Timeout(
                connect=10.0,
                read=http_timeout,
                write=600.0,
                pool=10.0
            )
        return self._timeout

    def build_client(
        self,
        service_type: ServiceType = ServiceType.DEFAULT,
        **overrides
    ) -> httpx.AsyncClient:
        """
        Build an HTTP client with service-specific settings.

        The client is not tracked by the factory; the caller closes it.

        Args:
            service_type: Type of service the client will be used for
            **overrides: Override default client configuration

        Returns:
            Configured AsyncClient instance
        """
        config = {
            'timeout': self._get_timeout(),
            'limits': self._get_connection_limits(),
            'follow_redirects': False,
        }

        if service_type == ServiceType.CONVERTAPI:
            # Converted files are served from storage URLs that may redirect
            config['follow_redirects'] = True

        config.update(overrides)

        return httpx.AsyncClient(**config)

    def create_client(
        self,
        service_type: ServiceType = ServiceType.DEFAULT,
        **overrides
    ) -> httpx.AsyncClient:
        """Create a managed client that is closed by :meth:`close_all_clients`."""
        client = self.build_client(service_type, **overrides)
        self._clients.setdefault(service_type, []).append(client)
        return client

    async def close_all_clients(self):
        """Close all managed clients."""
        for clients in self._clients.values():
            for client in clients:
                try:
                    await client.aclose()
                except Exception as e:
                    logger.warning(f"Error closing HTTP client: {e}")

        self._clients.clear()


# Global factory instance
_http_factory = HTTPClientFactory()


def get_http_client_factory() -> HTTPClientFactory:
    """Get the global HTTP client factory instance."""
    return _http_factory


def create_convertapi_client(**overrides) -> httpx.AsyncClient:
    """Create an unmanaged HTTP client for the ConvertAPI service; the caller closes it."""
    return _http_factory.build_client(ServiceType.CONVERTAPI, **overrides)


@asynccontextmanager
async def lifespan_http_clients():
    """
    Context manager for HTTP client lifecycle management.

    Use this in FastAPI lifespan events to ensure proper client cleanup.
    """
    try:
        yield
    finally:
        await _http_factory.close_all_clients()
