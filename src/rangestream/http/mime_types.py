"""
=============================================================================
MEDIA TYPE RESOLUTION
=============================================================================

Maps a requested file name to the Content-Type header value.

=============================================================================
AN ORDERED TABLE, NOT A DICTIONARY
=============================================================================

The lookup is a list of (needle, type) pairs checked top to bottom; the
first needle found anywhere in the lower-cased file name wins:

    ┌──────────┬───────────────────────────────┐
    │ needle   │ Content-Type                  │
    ├──────────┼───────────────────────────────┤
    │ .mp4     │ video/mp4                     │
    │ .m3u8    │ application/x-mpegURL         │   HLS playlist
    │ .ts      │ video/mp2t                    │   HLS segment
    │ .html    │ text/html; charset=utf-8      │
    │ .js      │ application/javascript        │
    │ .css     │ text/css                      │
    │ .jpg     │ image/jpeg                    │
    │ .jpeg    │ image/jpeg                    │
    │ .png     │ image/png                     │
    │ .gif     │ image/gif                     │
    │ .vtt     │ text/vtt; charset=utf-8       │   subtitles
    │ .srt     │ application/x-subrip          │   subtitles
    ├──────────┼───────────────────────────────┤
    │ (none)   │ application/octet-stream      │
    └──────────┴───────────────────────────────┘

Order matters: "movie.mp4.srt" is video/mp4 because ".mp4" is checked first.
Players on other devices care most about video/mp4 and text/vtt being
right; a browser refuses <track> subtitles served with the wrong type.

=============================================================================
"""

from pathlib import PurePath
from typing import Union


MEDIA_TYPES = (
    (".mp4", "video/mp4"),
    (".m3u8", "application/x-mpegURL"),
    (".ts", "video/mp2t"),
    (".html", "text/html; charset=utf-8"),
    (".js", "application/javascript"),
    (".css", "text/css"),
    (".jpg", "image/jpeg"),
    (".jpeg", "image/jpeg"),
    (".png", "image/png"),
    (".gif", "image/gif"),
    (".vtt", "text/vtt; charset=utf-8"),
    (".srt", "application/x-subrip"),
)

# "Unknown binary data": browsers download instead of rendering
DEFAULT_MEDIA_TYPE = "application/octet-stream"


def resolve_media_type(path: Union[str, PurePath]) -> str:
    """
    Get the Content-Type for a file.

    Only the last path component is inspected, so a directory called
    "clips.mp4" doesn't turn every file inside it into video.

    Args:
        path: File name or path.

    Returns:
        Content-Type header value.

    Examples:
        >>> resolve_media_type("/shows/pilot.MP4")
        'video/mp4'

        >>> resolve_media_type("pilot.en.vtt")
        'text/vtt; charset=utf-8'

        >>> resolve_media_type("notes.txt")
        'application/octet-stream'
    """
    name = PurePath(path).name.lower()
    for needle, media_type in MEDIA_TYPES:
        if needle in name:
            return media_type
    return DEFAULT_MEDIA_TYPE
