"""
Body map annotation.

Points live in a fixed 0-100 percentage space over a front and a back
body outline. Rendering draws the outline and a lettered marker per point
and returns PNG bytes ready to attach to an event log.
"""
import io
from typing import Dict, List, Optional

from PIL import Image, ImageColor, ImageDraw, ImageFont

SIDES = ('front', 'back')
DEFAULT_COLOR = '#dc2626'
OUTLINE_COLOR = '#6b7280'


def validate_points(points) -> List[Dict]:
    """Normalise body map points; raises ValueError on bad input"""
    if points in (None, ''):
        return []
    if not isinstance(points, list):
        raise ValueError('Body map points must be a list')

    cleaned = []
    for index, point in enumerate(points, start=1):
        if not isinstance(point, dict):
            raise ValueError(f'Point {index} must be an object')
        try:
            x = float(point['x'])
            y = float(point['y'])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f'Point {index} needs numeric x and y') from e
        if not (0 <= x <= 100 and 0 <= y <= 100):
            raise ValueError(f'Point {index} is outside the body map')
        side = point.get('side', 'front')
        if side not in SIDES:
            raise ValueError(f"Point {index} side must be 'front' or 'back'")
        color = point.get('color') or DEFAULT_COLOR
        try:
            ImageColor.getrgb(color)
        except (AttributeError, TypeError, ValueError) as e:
            raise ValueError(f'Point {index} has an invalid color') from e
        cleaned.append({
            'x': round(x, 2),
            'y': round(y, 2),
            'side': side,
            'letter': str(point.get('letter') or _letter(index))[:2],
            'color': color,
            'title': str(point.get('title') or '')[:200],
        })
    return cleaned


def _letter(index: int) -> str:
    return chr(ord('A') + (index - 1) % 26)


def _font(size: int):
    try:
        return ImageFont.truetype('/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf', size)
    except (OSError, IOError):
        return ImageFont.load_default()


def _draw_outline(draw: ImageDraw.ImageDraw, width: int, height: int) -> None:
    """Simple static body silhouette scaled to the canvas"""
    def box(x1, y1, x2, y2):
        return (x1 * width / 100, y1 * height / 100, x2 * width / 100, y2 * height / 100)

    line = max(2, width // 150)
    draw.ellipse(box(42, 2, 58, 14), outline=OUTLINE_COLOR, width=line)          # head
    draw.rectangle(box(47, 14, 53, 17), outline=OUTLINE_COLOR, width=line)       # neck
    draw.rounded_rectangle(box(35, 17, 65, 52), radius=width // 25, outline=OUTLINE_COLOR, width=line)  # torso
    draw.rounded_rectangle(box(24, 18, 33, 55), radius=width // 40, outline=OUTLINE_COLOR, width=line)  # right arm
    draw.rounded_rectangle(box(67, 18, 76, 55), radius=width // 40, outline=OUTLINE_COLOR, width=line)  # left arm
    draw.rounded_rectangle(box(37, 53, 49, 97), radius=width // 40, outline=OUTLINE_COLOR, width=line)  # right leg
    draw.rounded_rectangle(box(51, 53, 63, 97), radius=width // 40, outline=OUTLINE_COLOR, width=line)  # left leg


def render_body_map(points, side: str = 'front', width: int = 300, height: int = 600,
                    title: Optional[str] = None) -> bytes:
    """
    Rasterise one side of the body map to PNG.

    Args:
        points: Body map points (any side; only ``side`` is drawn)
        side: 'front' or 'back'
        width: Image width in pixels
        height: Image height in pixels
        title: Optional caption drawn at the top

    Returns:
        PNG bytes
    """
    if side not in SIDES:
        raise ValueError(f"Side must be 'front' or 'back', not {side!r}")

    image = Image.new('RGB', (width, height), color='white')
    draw = ImageDraw.Draw(image)
    _draw_outline(draw, width, height)

    caption = title or side.title()
    small = _font(max(10, width // 25))
    draw.text((6, 4), caption, fill='black', font=small)

    radius = max(8, width // 30)
    label_font = _font(radius)
    for point in validate_points(points):
        if point['side'] != side:
            continue
        cx = point['x'] * width / 100
        cy = point['y'] * height / 100
        draw.ellipse((cx - radius, cy - radius, cx + radius, cy + radius), fill=point['color'], outline='white', width=2)
        bbox = draw.textbbox((0, 0), point['letter'], font=label_font)
        text_w, text_h = bbox[2] - bbox[0], bbox[3] - bbox[1]
        draw.text((cx - text_w / 2 - bbox[0], cy - text_h / 2 - bbox[1]), point['letter'], fill='white', font=label_font)

    buffer = io.BytesIO()
    image.save(buffer, format='PNG', optimize=True)
    return buffer.getvalue()


def render_body_map_images(points) -> Dict[str, bytes]:
    """PNG per side that has at least one point"""
    cleaned = validate_points(points)
    return {side: render_body_map(cleaned, side) for side in SIDES if any(p['side'] == side for p in cleaned)}
