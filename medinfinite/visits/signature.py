"""
Signature capture.

Pointer/touch strokes are buffered as lists of points and redrawn onto an
offscreen Pillow image on export. A debouncer limits how often the
signature is persisted while the user is still drawing.
"""
import base64
import io
import math
import time
from typing import Callable, List, Optional, Tuple

from PIL import Image, ImageDraw

Point = Tuple[float, float]

MAX_CANVAS_SIZE = 2000


class SignaturePad:
    """
    Stroke buffer for one signature.

    Args:
        width: Canvas width in pixels
        height: Canvas height in pixels
        line_width: Pen width in pixels
        color: Pen colour
    """

    def __init__(self, width: int = 400, height: int = 150, line_width: int = 2, color: str = 'black'):
        self.width = _canvas_size(width)
        self.height = _canvas_size(height)
        self.line_width = line_width
        self.color = color
        self.strokes: List[List[Point]] = []
        self._current: Optional[List[Point]] = None

    def begin_stroke(self, x: float, y: float) -> None:
        self._current = [self._clamp(x, y)]
        self.strokes.append(self._current)

    def add_point(self, x: float, y: float) -> None:
        if self._current is None:
            self.begin_stroke(x, y)
            return
        self._current.append(self._clamp(x, y))

    def end_stroke(self) -> None:
        self._current = None

    def clear(self) -> None:
        self.strokes = []
        self._current = None

    def is_empty(self) -> bool:
        return not any(self.strokes)

    def load_strokes(self, strokes) -> None:
        """Replace the buffer with strokes sent by a client as [[[x, y], ...], ...]"""
        self.clear()
        try:
            for stroke in strokes or []:
                points = [self._clamp(*_coordinates(point)) for point in stroke]
                if points:
                    self.strokes.append(points)
        except (TypeError, ValueError) as e:
            self.clear()
            raise ValueError('Signature strokes are malformed') from e

    def _clamp(self, x: float, y: float) -> Point:
        return (min(max(x, 0), self.width - 1), min(max(y, 0), self.height - 1))

    def render(self) -> Image.Image:
        """Redraw every stroke onto a fresh transparent canvas"""
        image = Image.new('RGBA', (self.width, self.height), (255, 255, 255, 0))
        draw = ImageDraw.Draw(image)
        radius = max(self.line_width / 2, 0.5)
        for stroke in self.strokes:
            if len(stroke) == 1:
                x, y = stroke[0]
                draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=self.color)
            else:
                draw.line(stroke, fill=self.color, width=self.line_width, joint='curve')
        return image

    def to_png(self) -> bytes:
        if self.is_empty():
            raise ValueError('Signature is empty')
        buffer = io.BytesIO()
        self.render().save(buffer, format='PNG', optimize=True)
        return buffer.getvalue()

    def to_data_url(self) -> str:
        return 'data:image/png;base64,' + base64.b64encode(self.to_png()).decode('ascii')


def _canvas_size(value) -> int:
    return min(max(int(value), 1), MAX_CANVAS_SIZE)


def _coordinates(point) -> Point:
    x, y = point
    x, y = float(x), float(y)
    if not (math.isfinite(x) and math.isfinite(y)):
        raise ValueError('Signature point is not a finite number')
    return x, y


class SaveDebouncer:
    """
    Call ``save`` at most once per ``interval`` seconds. Requests inside
    the interval are dropped unless ``force`` is set.
    """

    def __init__(self, save: Callable[[], object], interval: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.save = save
        self.interval = interval
        self.clock = clock
        self.last_saved_at: Optional[float] = None

    def request_save(self, force: bool = False) -> bool:
        now = self.clock()
        if not force and self.last_saved_at is not None and now - self.last_saved_at < self.interval:
            return False
        self.save()
        self.last_saved_at = now
        return True


def is_signature_data_url(value) -> bool:
    return isinstance(value, str) and value.startswith('data:image/') and ';base64,' in value


def signature_from_payload(payload) -> str:
    """
    Accept either a PNG data URL or a list of strokes and return a data URL.
    Raises ValueError when the signature is missing or empty.
    """
    if is_signature_data_url(payload):
        try:
            base64.b64decode(payload.split(';base64,', 1)[1], validate=True)
        except (ValueError, TypeError) as e:
            raise ValueError('Signature image is not valid base64') from e
        return payload
    if isinstance(payload, dict) and 'strokes' in payload:
        try:
            pad = SignaturePad(payload.get('width') or 400, payload.get('height') or 150)
        except (OverflowError, TypeError, ValueError) as e:
            raise ValueError('Signature size must be a whole number of pixels') from e
        pad.load_strokes(payload['strokes'])
        return pad.to_data_url()
    raise ValueError('A signature is required')
