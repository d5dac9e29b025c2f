"""
Placeholder thumbnails for videos.

Frame extraction belongs to the external transcoder. Until it reports a
real poster frame, clients get a deterministic PNG: a diagonal gradient
whose hue is derived from the video id, a play button and two captions.

Functions:
    render_placeholder_thumbnail: PNG bytes for (video_id, at_seconds)
"""

from __future__ import annotations

import colorsys
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont

from core.helpers import hash_string

# =============================================================================
# Constants
# =============================================================================

THUMBNAIL_SIZE = (320, 180)
SATURATION = 0.70
LIGHTNESS = 0.50
# Second gradient stop is rotated and darkened relative to the first
HUE_SHIFT = 30
LIGHTNESS_DROP = 0.10

PLAY_RADIUS = 25
OVERLAY_ALPHA = 77  # ~30% black


def hue_for(video_id: str) -> int:
    """Stable hue in [0, 360) for a video id."""
    return int(hash_string(str(video_id))[:8], 16) % 360


def _hsl(hue: float, saturation: float, lightness: float) -> tuple[int, int, int]:
    r, g, b = colorsys.hls_to_rgb((hue % 360) / 360, lightness, saturation)
    return round(r * 255), round(g * 255), round(b * 255)


def render_placeholder_thumbnail(video_id: str, at_seconds: int = 0) -> bytes:
    """
    Render the placeholder thumbnail as PNG bytes.

    Args:
        video_id: Video identifier; drives the colour
        at_seconds: Requested timestamp, shown in the caption

    Returns:
        PNG-encoded image of THUMBNAIL_SIZE
    """
    width, height = THUMBNAIL_SIZE
    hue = hue_for(video_id)
    start = _hsl(hue, SATURATION, LIGHTNESS)
    end = _hsl(hue + HUE_SHIFT, SATURATION, LIGHTNESS - LIGHTNESS_DROP)

    img = Image.new("RGB", THUMBNAIL_SIZE, start)
    draw = ImageDraw.Draw(img)

    # Diagonal gradient: blend factor follows x + y
    span = width + height - 2
    for x in range(width):
        for y in range(0, height, 4):
            t = (x + y) / span
            colour = tuple(round(s + (e - s) * t) for s, e in zip(start, end))
            draw.line([(x, y), (x, min(y + 3, height - 1))], fill=colour)

    img = img.convert("RGBA")
    overlay = Image.new("RGBA", THUMBNAIL_SIZE, (0, 0, 0, OVERLAY_ALPHA))
    img = Image.alpha_composite(img, overlay)

    draw = ImageDraw.Draw(img)
    cx, cy = width // 2, height // 2
    draw.ellipse(
        [(cx - PLAY_RADIUS, cy - PLAY_RADIUS), (cx + PLAY_RADIUS, cy + PLAY_RADIUS)],
        fill=(255, 255, 255, 230),
    )
    draw.polygon(
        [(cx - 10, cy - 10), (cx - 10, cy + 10), (cx + 15, cy)],
        fill=(0, 0, 0, 204),
    )

    font = ImageFont.load_default()
    draw.text((10, 12), f"Video ID: {str(video_id)[:8]}...", fill="white", font=font)
    draw.text((10, height - 22), f"Thumbnail at {at_seconds}s", fill="white", font=font)

    buffer = BytesIO()
    img.convert("RGB").save(buffer, format="PNG")
    return buffer.getvalue()
