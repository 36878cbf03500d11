"""Training metrics report email"""
from django.utils.html import escape

from medinfinite.notifications.emails import wrap_html

CLASS_COLORS = {
    'high': '#16a34a',
    'medium': '#eab308',
    'low': '#dc2626',
}


def default_subject(metrics):
    return f"Training Metrics Report - {metrics['branch_name']} - {metrics['report_date']:%d/%m/%Y}"


def render_training_metrics_email(metrics, message=''):
    """Render the HTML body of the training metrics report"""
    summary = metrics['summary']

    cards = [
        ('Total Staff', summary['total_staff']),
        ('Compliance', f"{summary['overall_compliance']}%"),
        ('Overdue', summary['overdue']),
        ('Expiring Soon', summary['expiring_soon']),
        ('Completed This Month', summary['completed_this_month']),
    ]
    card_html = ''.join(
        f'<td style="padding: 12px; text-align: center; border: 1px solid #e5e7eb;">'
        f'<div style="font-size: 22px; font-weight: 700;">{escape(value)}</div>'
        f'<div style="font-size: 12px; color: #6b7280;">{escape(label)}</div></td>'
        for label, value in cards
    )

    staff_rows = ''.join(
        f"<tr><td>{escape(row['name'])}</td><td>{row['completed']}/{row['total']}</td>"
        f"<td>{row['overdue']}</td><td>{row['expiring']}</td>"
        f"<td style=\"color: {CLASS_COLORS[row['compliance_class']]}; font-weight: 600;\">{row['compliance_rate']}%</td></tr>"
        for row in metrics['staff']
    ) or '<tr><td colspan="5">No active staff</td></tr>'

    category_rows = ''.join(
        f"<tr><td>{escape(row['category'].title())}</td><td>{row['completed']}/{row['total']}</td>"
        f"<td style=\"color: {CLASS_COLORS[row['compliance_class']]}; font-weight: 600;\">{row['compliance_rate']}%</td></tr>"
        for row in metrics['categories']
    ) or '<tr><td colspan="3">No training records</td></tr>'

    intro = f'<p style="color: #374151;">{escape(message)}</p>' if message else ''
    body = f"""
<h1 style="color: #1e40af; font-size: 22px;">Training Metrics Report</h1>
<p style="color: #6b7280;">{escape(metrics['branch_name'])} - {metrics['report_date']:%d %B %Y}</p>
{intro}
<h2 style="font-size: 18px;">Executive Summary</h2>
<table style="border-collapse: collapse; width: 100%;"><tr>{card_html}</tr></table>
<h2 style="font-size: 18px;">Staff Compliance</h2>
<table style="border-collapse: collapse; width: 100%;" cellpadding="6">
<tr style="background-color: #f3f4f6;"><th align="left">Staff</th><th>Completed</th><th>Overdue</th><th>Expiring</th><th>Rate</th></tr>
{staff_rows}
</table>
<h2 style="font-size: 18px;">Compliance by Category</h2>
<table style="border-collapse: collapse; width: 100%;" cellpadding="6">
<tr style="background-color: #f3f4f6;"><th align="left">Category</th><th>Completed</th><th>Rate</th></tr>
{category_rows}
</table>
"""
    return wrap_html(default_subject(metrics), body)
