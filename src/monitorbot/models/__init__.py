from __future__ import annotations

from monitorbot.models.response import MediaType, ResponseRecord, parse_media_type

__all__ = [
    "MediaType",
    "ResponseRecord",
    "parse_media_type",
]
