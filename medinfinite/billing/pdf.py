"""Invoice PDF drawn on a reportlab canvas"""
import io

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

CURRENCY_SYMBOLS = {'GBP': '£', 'EUR': '€', 'USD': '$'}


def _money(value, currency):
    return f"{CURRENCY_SYMBOLS.get(currency, currency + ' ')}{value:,.2f}"


def render_invoice_pdf(invoice) -> bytes:
    """
    Render an invoice with its line items and payment summary.

    Args:
        invoice: Invoice with client, branch and line items

    Returns:
        PDF bytes
    """
    buffer = io.BytesIO()
    width, height = A4
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle(f"Invoice {invoice.invoice_number}")

    branch = invoice.branch
    client = invoice.client
    currency = branch.currency or 'GBP'
    margin = 50
    page = 1

    def footer():
        pdf.setFont('Helvetica', 8)
        pdf.drawString(margin, 30, f"Invoice {invoice.invoice_number}")
        pdf.drawRightString(width - margin, 30, f"Page {page}")

    def item_heading(y):
        pdf.setFont('Helvetica-Bold', 9)
        pdf.drawString(margin, y, 'Date')
        pdf.drawString(margin + 70, y, 'Description')
        pdf.drawRightString(width - margin - 170, y, 'Minutes')
        pdf.drawRightString(width - margin - 100, y, 'Rate')
        pdf.drawRightString(width - margin, y, 'Amount')
        pdf.line(margin, y - 4, width - margin, y - 4)
        pdf.setFont('Helvetica', 9)
        return y - 18

    # Header
    y = height - 60
    pdf.setFont('Helvetica-Bold', 20)
    pdf.drawString(margin, y, 'INVOICE')
    pdf.setFont('Helvetica-Bold', 11)
    organisation = branch.organization.name if branch.organization_id else branch.name
    pdf.drawRightString(width - margin, y, organisation)
    pdf.setFont('Helvetica', 9)
    for offset, line in enumerate(filter(None, [branch.name if branch.organization_id else '',
                                                *branch.address.splitlines(), branch.phone, branch.email]), start=1):
        pdf.drawRightString(width - margin, y - offset * 12, line)

    y -= 30
    pdf.setFont('Helvetica', 10)
    pdf.drawString(margin, y, f"Invoice number: {invoice.invoice_number}")
    pdf.drawString(margin, y - 14, f"Invoice date: {invoice.invoice_date:%d/%m/%Y}")
    if invoice.due_date:
        pdf.drawString(margin, y - 28, f"Due date: {invoice.due_date:%d/%m/%Y}")
    if invoice.period_start and invoice.period_end:
        pdf.drawString(margin, y - 42, f"Period: {invoice.period_start:%d/%m/%Y} - {invoice.period_end:%d/%m/%Y}")

    y -= 80
    pdf.setFont('Helvetica-Bold', 10)
    pdf.drawString(margin, y, 'Bill to')
    pdf.setFont('Helvetica', 10)
    y -= 14
    for line in filter(None, [client.full_name, *client.address.splitlines(), client.postcode]):
        pdf.drawString(margin, y, line)
        y -= 12

    # Line items
    y = item_heading(y - 20)
    for item in invoice.line_items.all():
        if y < 120:
            footer()
            pdf.showPage()
            page += 1
            y = item_heading(height - 60)
        pdf.drawString(margin, y, f"{item.visit_date:%d/%m/%Y}" if item.visit_date else '')
        description = item.description
        while description and pdf.stringWidth(description, 'Helvetica', 9) > width - 2 * margin - 250:
            description = description[:-1]
        pdf.drawString(margin + 70, y, description)
        pdf.drawRightString(width - margin - 170, y, str(item.billing_minutes))
        pdf.drawRightString(width - margin - 100, y, _money(item.unit_price, currency))
        pdf.drawRightString(width - margin, y, _money(item.line_total, currency))
        y -= 14

    # Totals
    y -= 10
    pdf.line(width - margin - 200, y + 6, width - margin, y + 6)
    rows = [
        ('Net', invoice.net_amount),
        ('VAT', invoice.vat_amount),
        ('Total', invoice.total_amount),
        ('Paid', invoice.paid_amount),
        ('Balance due', invoice.due_amount),
    ]
    for label, amount in rows:
        pdf.setFont('Helvetica-Bold' if label in ('Total', 'Balance due') else 'Helvetica', 10)
        pdf.drawString(width - margin - 200, y - 8, label)
        pdf.drawRightString(width - margin, y - 8, _money(amount, currency))
        y -= 16

    if invoice.notes:
        pdf.setFont('Helvetica-Oblique', 9)
        pdf.drawString(margin, y - 20, invoice.notes[:120])

    footer()
    pdf.save()
    return buffer.getvalue()
