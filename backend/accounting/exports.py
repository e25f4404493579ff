"""
Export utilities for accounting reports.
Supports Excel (.xlsx), CSV (.csv) and PDF (.pdf) formats.

Every report is built once as JSON-shaped data (rows + summary); these
functions only change how the same rows are serialized.
"""
import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from django.http import HttpResponse
from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from accounting.exceptions import ValidationError


class ExportFormat:
    JSON = 'json'
    EXCEL = 'xlsx'
    CSV = 'csv'
    PDF = 'pdf'

    CHOICES = [JSON, EXCEL, CSV, PDF]
    FILE_CHOICES = [EXCEL, CSV, PDF]
    CONTENT_TYPES = {
        EXCEL: 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        CSV: 'text/csv',
        PDF: 'application/pdf',
    }


def format_value(value: Any) -> str:
    """Format a value for export."""
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    return str(value)


def summary_lines(summary: dict | None) -> list[str]:
    if not summary:
        return []
    return [
        f"{key.replace('_', ' ').title()}: {format_value(value)}"
        for key, value in summary.items()
        if not isinstance(value, (dict, list))
    ]


def export_to_excel(
    data: list[dict],
    columns: list[dict],
    title: str = 'Export',
    sheet_name: str = 'Data',
    summary: dict | None = None,
) -> bytes:
    """
    Export data to Excel format.

    Args:
        data: List of dictionaries containing the data
        columns: List of column definitions with 'key', 'header', and optional 'width'
        title: Title for the export (used in header row)
        sheet_name: Name of the worksheet
        summary: Optional flat dict written below the table

    Returns:
        Bytes of the Excel file
    """
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    # Styles
    header_font = Font(bold=True, color='FFFFFF')
    header_fill = PatternFill(start_color='4472C4', end_color='4472C4', fill_type='solid')
    header_alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)
    thin_border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    # Title row
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(columns))
    title_cell = ws.cell(row=1, column=1, value=title)
    title_cell.font = Font(bold=True, size=14)
    title_cell.alignment = Alignment(horizontal='center')

    # Export timestamp
    ws.merge_cells(start_row=2, start_column=1, end_row=2, end_column=len(columns))
    timestamp_cell = ws.cell(row=2, column=1, value=f"Exported: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    timestamp_cell.alignment = Alignment(horizontal='center')
    timestamp_cell.font = Font(italic=True, size=10, color='666666')

    # Header row
    header_row = 4
    for col_idx, col in enumerate(columns, 1):
        cell = ws.cell(row=header_row, column=col_idx, value=col['header'])
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment
        cell.border = thin_border
        ws.column_dimensions[get_column_letter(col_idx)].width = col.get('width', 15)

    # Data rows
    row_idx = header_row
    for row_idx, row_data in enumerate(data, header_row + 1):
        for col_idx, col in enumerate(columns, 1):
            value = row_data.get(col['key'], '')
            if col.get('numeric') and isinstance(value, Decimal):
                cell = ws.cell(row=row_idx, column=col_idx, value=float(value))
                cell.number_format = '#,##0.00'
            else:
                cell = ws.cell(row=row_idx, column=col_idx, value=format_value(value))
            cell.border = thin_border
            if col.get('numeric'):
                cell.alignment = Alignment(horizontal='right')

    for offset, line in enumerate(summary_lines(summary), start=2):
        ws.cell(row=row_idx + offset, column=1, value=line).font = Font(bold=offset == 2)

    # Freeze header row
    ws.freeze_panes = ws.cell(row=header_row + 1, column=1)

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output.getvalue()


def export_to_csv(
    data: list[dict],
    columns: list[dict],
    delimiter: str = ',',
) -> str:
    """
    Export data to CSV format.

    Args:
        data: List of dictionaries containing the data
        columns: List of column definitions with 'key' and 'header'
        delimiter: CSV delimiter character

    Returns:
        CSV string
    """
    output = io.StringIO()
    writer = csv.writer(output, delimiter=delimiter, quoting=csv.QUOTE_MINIMAL)

    writer.writerow([col['header'] for col in columns])
    for row_data in data:
        writer.writerow([format_value(row_data.get(col['key'], '')) for col in columns])

    return output.getvalue()


def export_to_pdf(
    data: list[dict],
    columns: list[dict],
    title: str = 'Export',
    summary: dict | None = None,
) -> bytes:
    """Export data to a landscape A4 PDF table followed by the summary block."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        rightMargin=30,
        leftMargin=30,
        topMargin=30,
        bottomMargin=18,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'ReportTitle',
        parent=styles['Heading1'],
        fontSize=18,
        textColor=colors.HexColor('#4472C4'),
        spaceAfter=12,
        alignment=TA_CENTER,
    )
    subtitle_style = ParagraphStyle(
        'ReportSubtitle',
        parent=styles['Normal'],
        fontSize=9,
        textColor=colors.grey,
        spaceAfter=16,
        alignment=TA_CENTER,
    )

    elements = [
        Paragraph(title, title_style),
        Paragraph(f"Generated on: {datetime.now().strftime('%Y-%m-%d %H:%M')}", subtitle_style),
        Spacer(1, 0.1 * inch),
    ]

    table_data = [[col['header'] for col in columns]]
    for row_data in data:
        table_data.append([format_value(row_data.get(col['key'], ''))[:40] for col in columns])

    table = Table(table_data, colWidths=[col.get('width', 15) * 0.09 * inch for col in columns], repeatRows=1)
    style = [
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#4472C4')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, 0), 9),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 1), (-1, -1), 8),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#F5F5F5')]),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ]
    for idx, col in enumerate(columns):
        if col.get('numeric'):
            style.append(('ALIGN', (idx, 1), (idx, -1), 'RIGHT'))
    table.setStyle(TableStyle(style))
    elements.append(table)

    lines = summary_lines(summary)
    if lines:
        elements.append(Spacer(1, 0.3 * inch))
        elements.append(Paragraph("<b>Summary</b><br/>" + "<br/>".join(lines), styles['Normal']))

    doc.build(elements)
    pdf = buffer.getvalue()
    buffer.close()
    return pdf


def create_export_response(
    data: list[dict],
    columns: list[dict],
    format: str,
    filename: str,
    title: str = 'Export',
    summary: dict | None = None,
) -> HttpResponse:
    """
    Create an HTTP response with the exported file.

    Args:
        data: List of dictionaries containing the data
        columns: List of column definitions
        format: Export format (xlsx, csv, pdf)
        filename: Base filename (without extension)
        title: Title for Excel/PDF export
        summary: Optional flat dict appended to Excel/PDF output

    Returns:
        HttpResponse with the file content
    """
    if format not in ExportFormat.FILE_CHOICES:
        raise ValidationError(
            f"Invalid format: {format}. Must be one of {ExportFormat.CHOICES}",
            {"field": "format"},
        )

    content_type = ExportFormat.CONTENT_TYPES[format]
    full_filename = f"{filename}.{format}"

    if format == ExportFormat.EXCEL:
        response = HttpResponse(export_to_excel(data, columns, title=title, summary=summary), content_type=content_type)
    elif format == ExportFormat.CSV:
        response = HttpResponse(export_to_csv(data, columns), content_type=content_type)
        response.charset = 'utf-8-sig'  # BOM for Excel compatibility
    else:  # PDF
        response = HttpResponse(export_to_pdf(data, columns, title=title, summary=summary), content_type=content_type)

    response['Content-Disposition'] = f'attachment; filename="{full_filename}"'
    return response
