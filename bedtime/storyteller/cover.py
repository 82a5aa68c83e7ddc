"""
Story cover preview rendering.

Draws a 1200x630 card with a mood-tinted gradient, the story title and
theme/mood/length captions, encoded as WebP.
"""

import asyncio
import io
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont


COVER_SIZE = (1200, 630)
TITLE_MAX_CHARS = 60

Color = Tuple[int, int, int]

MOOD_PALETTES: dict[str, Tuple[Color, Color]] = {
    "nyugodt": ((43, 16, 85), (61, 26, 115)),
    "vidam": ((255, 153, 102), (255, 94, 98)),
    "kalandos": ((17, 70, 143), (36, 123, 160)),
}
DEFAULT_PALETTE: Tuple[Color, Color] = MOOD_PALETTES["nyugodt"]

LENGTH_LABELS = {"short": "Rövid", "medium": "Közepes", "long": "Hosszú"}


def truncate(value: Optional[str], max_chars: int = TITLE_MAX_CHARS) -> str:
    if not value:
        return ""
    if len(value) <= max_chars:
        return value
    return value[:max_chars - 1] + "…"


def _gradient(size: Tuple[int, int], start: Color, end: Color) -> Image.Image:
    width, height = size
    image = Image.new("RGB", size, start)
    draw = ImageDraw.Draw(image)
    for y in range(height):
        ratio = y / max(height - 1, 1)
        color = tuple(int(s + (e - s) * ratio) for s, e in zip(start, end))
        draw.line([(0, y), (width, y)], fill=color)
    return image


def _font(size: int):
    return ImageFont.load_default(size=size)


class PillowCoverBuilder:
    """Renders cover previews; the output depends only on its four inputs."""

    def __init__(self, size: Tuple[int, int] = COVER_SIZE, quality: int = 85):
        self.size = size
        self.quality = quality

    def render(self, title: str, theme: str, mood: str, length: str) -> bytes:
        start, end = MOOD_PALETTES.get(mood, DEFAULT_PALETTE)
        image = _gradient(self.size, start, end)
        draw = ImageDraw.Draw(image)
        width, height = self.size

        draw.text(
            (width // 2, height // 2 - 40),
            truncate(title) or "Mese",
            font=_font(64),
            fill=(255, 255, 255),
            anchor="mm",
        )
        caption = " · ".join([
            theme or "Téma",
            mood or "Hangulat",
            LENGTH_LABELS.get(length, length or "Hossz"),
        ])
        draw.text(
            (width // 2, height // 2 + 60),
            caption,
            font=_font(32),
            fill=(230, 225, 245),
            anchor="mm",
        )

        buffer = io.BytesIO()
        image.save(buffer, format="WEBP", quality=self.quality)
        return buffer.getvalue()

    async def generate_cover_buffer(
        self,
        title: str,
        theme: str,
        mood: str,
        length: str,
    ) -> bytes:
        return await asyncio.to_thread(self.render, title, theme, mood, length)
