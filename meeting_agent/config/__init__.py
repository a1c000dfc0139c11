"""Runtime configuration helpers."""

from meeting_agent.config.settings import ProviderSnapshot, Settings, load_settings, resolve_provider_snapshot

__all__ = ["ProviderSnapshot", "Settings", "load_settings", "resolve_provider_snapshot"]
