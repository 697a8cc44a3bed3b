"""FastAPI dependencies for the services created in the app lifespan."""

from fastapi import Request

from ..core.config import ConfigStore, HostConfig
from ..services.gateway import ModelInvoker
from ..services.host_monitor import ModelHostMonitor


def get_config_store(request: Request) -> ConfigStore:
    return request.app.state.config_store


def get_host_config(request: Request) -> HostConfig:
    """Snapshot taken once per request."""
    return request.app.state.config_store.snapshot()


def get_host_monitor(request: Request) -> ModelHostMonitor:
    return request.app.state.host_monitor


def get_invoker(request: Request) -> ModelInvoker:
    return request.app.state.gateway
