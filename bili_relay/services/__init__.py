"""Long-running services."""

from bili_relay.services.relay_service import RelayService, build_sources

__all__ = ["RelayService", "build_sources"]
