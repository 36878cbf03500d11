"""
Report generator.

Takes an in-memory list of row dicts, aggregates it in a single pass and
renders it as CSV or as a paginated PDF table drawn with reportlab.
"""
import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from django.utils import timezone
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

Column = Tuple[str, str]  # (key, heading)


def _number(value) -> Optional[Decimal]:
    if value is None or value == '' or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except (ArithmeticError, ValueError):
        return None


def summarize(rows: Iterable[Dict[str, Any]], value_key: Optional[str] = None,
              group_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Single pass over ``rows``.

    Args:
        rows: Row dicts
        value_key: Numeric column to total/average (non-numeric values are skipped)
        group_key: Column whose values are counted

    Returns:
        Dict with count, total, average, min, max and groups
    """
    count = 0
    values = 0
    total = Decimal('0')
    minimum = maximum = None
    groups: Dict[str, int] = {}

    for row in rows:
        count += 1
        if value_key is not None:
            value = _number(row.get(value_key))
            if value is not None:
                values += 1
                total += value
                minimum = value if minimum is None or value < minimum else minimum
                maximum = value if maximum is None or value > maximum else maximum
        if group_key is not None:
            group = row.get(group_key)
            group = 'Unspecified' if group in (None, '') else str(group)
            groups[group] = groups.get(group, 0) + 1

    return {
        'count': count,
        'total': total,
        'average': (total / values).quantize(Decimal('0.01')) if values else Decimal('0'),
        'min': minimum,
        'max': maximum,
        'groups': dict(sorted(groups.items(), key=lambda item: (-item[1], item[0]))),
    }


def format_value(value) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if isinstance(value, datetime):
        value = timezone.localtime(value) if timezone.is_aware(value) else value
        return value.strftime('%d/%m/%Y %H:%M')
    if isinstance(value, date):
        return value.strftime('%d/%m/%Y')
    if isinstance(value, (list, tuple)):
        return ', '.join(format_value(item) for item in value)
    return str(value)


def to_csv(rows: Iterable[Dict[str, Any]], columns: Sequence[Column]) -> str:
    """CSV text with a heading row; values are formatted for people, not machines"""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([heading for _, heading in columns])
    for row in rows:
        writer.writerow([format_value(row.get(key)) for key, _ in columns])
    return buffer.getvalue()


def _fit(text: str, width: float, pdf: canvas.Canvas, font: str, size: int) -> str:
    if pdf.stringWidth(text, font, size) <= width:
        return text
    while text and pdf.stringWidth(text + '...', font, size) > width:
        text = text[:-1]
    return text + '...'


def to_pdf(title: str, columns: Sequence[Column], rows: List[Dict[str, Any]],
           summary: Optional[Dict[str, Any]] = None, organisation: Optional[str] = None) -> bytes:
    """
    Render a report as PDF bytes.

    The first page carries the organisation, title, generation time and the
    summary block; the table continues over as many pages as needed with
    its heading repeated and a page number in the footer.
    """
    buffer = io.BytesIO()
    pagesize = landscape(A4) if len(columns) > 6 else A4
    width, height = pagesize
    pdf = canvas.Canvas(buffer, pagesize=pagesize)
    pdf.setTitle(title)

    margin = 40
    row_height = 16
    col_width = (width - 2 * margin) / max(len(columns), 1)
    page = 1

    def footer():
        pdf.setFont('Helvetica', 8)
        pdf.drawRightString(width - margin, 25, f'Page {page}')
        pdf.drawString(margin, 25, organisation or 'Med-Infinite')

    def table_heading(y):
        pdf.setFillColorRGB(0.95, 0.96, 0.97)
        pdf.rect(margin, y - 4, width - 2 * margin, row_height, fill=1, stroke=0)
        pdf.setFillColorRGB(0, 0, 0)
        pdf.setFont('Helvetica-Bold', 9)
        for index, (_, heading) in enumerate(columns):
            pdf.drawString(margin + index * col_width + 2, y, _fit(heading, col_width - 4, pdf, 'Helvetica-Bold', 9))
        return y - row_height

    y = height - 50
    if organisation:
        pdf.setFont('Helvetica', 10)
        pdf.drawString(margin, y, organisation)
        y -= 20
    pdf.setFont('Helvetica-Bold', 16)
    pdf.drawString(margin, y, title)
    y -= 18
    pdf.setFont('Helvetica', 9)
    pdf.drawString(margin, y, f"Generated: {timezone.localtime():%d/%m/%Y %H:%M}")
    y -= 24

    if summary:
        pdf.setFont('Helvetica-Bold', 11)
        pdf.drawString(margin, y, 'Summary')
        y -= 15
        pdf.setFont('Helvetica', 9)
        for label, value in summary.items():
            if isinstance(value, dict):
                value = ', '.join(f'{key}: {count}' for key, count in value.items()) or '-'
            pdf.drawString(margin + 10, y, _fit(f"{label.replace('_', ' ').title()}: {format_value(value)}",
                                                 width - 2 * margin - 10, pdf, 'Helvetica', 9))
            y -= 13
        y -= 12

    y = table_heading(y)
    pdf.setFont('Helvetica', 8)
    if not rows:
        pdf.drawString(margin + 2, y, 'No records found')
    for row in rows:
        if y < 50:
            footer()
            pdf.showPage()
            page += 1
            y = table_heading(height - 50)
            pdf.setFont('Helvetica', 8)
        for index, (key, _) in enumerate(columns):
            text = _fit(format_value(row.get(key)), col_width - 4, pdf, 'Helvetica', 8)
            pdf.drawString(margin + index * col_width + 2, y, text)
        y -= row_height - 3

    footer()
    pdf.save()
    return buffer.getvalue()
