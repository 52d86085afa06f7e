"""
Background color parsing.
"""

import re
from typing import NamedTuple, Optional

DEFAULT_BACKGROUND_COLOR = "rgb(41, 128, 185)"

_RGB_PATTERN = re.compile(r"rgb\((\d+),\s*(\d+),\s*(\d+)\)")


class Color(NamedTuple):
    """RGB triple; alpha is only used while compositing strip images"""

    r: int
    g: int
    b: int
    alpha: Optional[float] = None

    def with_alpha(self, alpha: float) -> "Color":
        return self._replace(alpha=alpha)

    def rgba(self):
        """Return an (r, g, b, a) tuple with alpha scaled to 0-255"""
        alpha = 1.0 if self.alpha is None else self.alpha
        return (self.r, self.g, self.b, int(round(alpha * 255)))

    def to_css(self) -> str:
        return f"rgb({self.r}, {self.g}, {self.b})"


def _match(text: str) -> Optional[Color]:
    match = _RGB_PATTERN.search(text)
    if not match:
        return None
    r, g, b = (int(group) for group in match.groups())
    if max(r, g, b) > 255:
        return None
    return Color(r, g, b)


DEFAULT_COLOR = _match(DEFAULT_BACKGROUND_COLOR)


def parse_rgb_color(text: Optional[str]) -> Color:
    """
    Parse an ``rgb(r, g, b)`` string.

    Absent or unparseable input resolves to the default sky-blue instead of
    failing the request.
    """
    if not text:
        return DEFAULT_COLOR
    return _match(text) or DEFAULT_COLOR
