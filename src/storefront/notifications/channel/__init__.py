"""Channel adapter registry; the fake email adapter stands in for a mail transport."""

from storefront.notifications.log import NotificationChannel

_channel_instances: dict[str, object] = {}


def _default_adapter(channel_type: str):
    if channel_type == NotificationChannel.EMAIL.value:
        from storefront.notifications.channel.fake_email import FakeEmailAdapter

        return FakeEmailAdapter()
    raise ValueError(f"Unknown channel type: {channel_type}")


def get_channel(channel_type: str):
    """Return the adapter for ``channel_type`` (one instance per process)."""
    adapter = _channel_instances.get(channel_type)
    if adapter is None:
        adapter = _channel_instances[channel_type] = _default_adapter(channel_type)
    return adapter


def reset_channels():
    _channel_instances.clear()
