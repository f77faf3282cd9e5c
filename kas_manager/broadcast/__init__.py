"""Monthly WhatsApp broadcast rendering."""

from kas_manager.broadcast.renderer import (
    BroadcastStats,
    broadcast_stats,
    render_broadcast,
    whatsapp_share_url,
)

__all__ = [
    "BroadcastStats",
    "broadcast_stats",
    "render_broadcast",
    "whatsapp_share_url",
]
