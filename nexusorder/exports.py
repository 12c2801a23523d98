"""
nexusorder/exports.py

Document outputs:
- build_orders_workbook(orders) -> bytes   (openpyxl; sheets "Pedidos" and "Avances")
- build_order_pdf(order)        -> bytes   (reportlab; single printable order)

Figures always come from economics.compute_order_economics.
"""

from __future__ import annotations

import io
from datetime import date, datetime
from typing import Any, Iterable
from xml.sax.saxutils import escape

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .economics import compute_order_economics
from .models import UNASSIGNED_CONTRACTOR

ORDER_COLUMNS = [
    "ID",
    "FechaRegistro",
    "EmpresaVendedora",
    "Cliente",
    "OC",
    "Servicio",
    "DetalleID_Servicio",
    "Cantidad",
    "Unidad",
    "PrecioUnitario",
    "CostoUnitario",
    "TotalVenta",
    "CostoTotal",
    "Margen",
    "MargenPorcentaje",
    "AvancePorcentaje",
    "Contratista",
    "Estado",
    "Responsable",
    "FechaCompromiso",
    "FechaCertificacion",
    "FechaFacturacion",
    "Observaciones",
]

PROGRESS_COLUMNS = [
    "PedidoID",
    "Cliente",
    "Servicio",
    "Fecha",
    "Cantidad",
    "FechaCertificacion",
    "FechaFacturacion",
    "Notas",
    "Usuario",
]

HEADER_FILL = PatternFill("solid", fgColor="1E40AF")
HEADER_FONT = Font(bold=True, color="FFFFFF")
PRIMARY = colors.HexColor("#1e40af")


def _cell(value: Any) -> Any:
    """openpyxl accepts numbers/dates/strings; Decimal goes out as float."""
    if value is None:
        return ""
    if isinstance(value, (date, datetime, int, float, str)):
        return value
    return float(value)


def _write_header(sheet, columns) -> None:
    sheet.append(columns)
    for cell in sheet[1]:
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT


def build_orders_workbook(orders: Iterable[Any]) -> bytes:
    orders = list(orders)

    wb = Workbook()
    ws = wb.active
    ws.title = "Pedidos"
    _write_header(ws, ORDER_COLUMNS)

    for order in orders:
        economics = compute_order_economics(order)
        ws.append(
            [
                _cell(order.id),
                _cell(order.date),
                _cell(order.selling_company),
                _cell(order.client_name),
                _cell(order.po_number),
                _cell(order.service_name),
                _cell(order.service_details),
                _cell(order.quantity),
                _cell(order.unit_of_measure),
                _cell(order.unit_price),
                _cell(order.unit_cost),
                _cell(economics.total_value),
                _cell(economics.cost),
                _cell(economics.margin),
                _cell(economics.margin_percent),
                _cell(economics.progress_percent),
                _cell(order.contractor_name or UNASSIGNED_CONTRACTOR),
                _cell(order.status),
                _cell(order.operations_rep),
                _cell(order.commitment_date),
                _cell(order.client_cert_date),
                _cell(order.billing_date),
                _cell(order.observations),
            ]
        )

    progress_ws = wb.create_sheet("Avances")
    _write_header(progress_ws, PROGRESS_COLUMNS)
    for order in orders:
        for log in order.progress_logs or []:
            progress_ws.append(
                [
                    _cell(order.id),
                    _cell(order.client_name),
                    _cell(order.service_name),
                    _cell(log.date),
                    _cell(log.quantity),
                    _cell(log.certification_date),
                    _cell(log.billing_date),
                    _cell(log.notes),
                    _cell(log.user),
                ]
            )

    for sheet in (ws, progress_ws):
        for column_cells in sheet.columns:
            width = max(len(str(c.value or "")) for c in column_cells)
            sheet.column_dimensions[column_cells[0].column_letter].width = min(max(width + 2, 10), 50)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _money(value: Any) -> str:
    return f"${float(value or 0):,.2f}"


def _fmt_date(value: Any) -> str:
    if value is None:
        return "-"
    return value.strftime("%d/%m/%Y")


def build_order_pdf(order: Any, app_name: str = "NEXUS ORDER") -> bytes:
    economics = compute_order_economics(order)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"Pedido {order.id}")
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "OrderTitle",
        parent=styles["Heading1"],
        fontSize=18,
        textColor=PRIMARY,
        spaceAfter=4,
    )
    right_style = ParagraphStyle("Right", parent=styles["Normal"], alignment=TA_RIGHT)

    story = [
        Paragraph(app_name.upper(), title_style),
        Paragraph("Gestión de Servicios y Proyectos", styles["Normal"]),
        Spacer(1, 6),
        Paragraph(escape(order.selling_company or ""), right_style),
        Paragraph(f"Fecha Emisión: {_fmt_date(order.date)}", right_style),
        Paragraph(f"Orden #: {order.id}", right_style),
        Spacer(1, 16),
        Paragraph("Información del Cliente", styles["Heading3"]),
    ]

    info_table = Table(
        [
            ["Cliente:", order.client_name or "-"],
            ["Orden de Compra (OC):", order.po_number or "N/A"],
            ["Responsable:", order.operations_rep or UNASSIGNED_CONTRACTOR],
            ["Estado:", order.status or "-"],
            ["Fecha Compromiso:", _fmt_date(order.commitment_date)],
        ],
        colWidths=[2 * inch, 4 * inch],
    )
    info_table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
            ]
        )
    )
    story += [info_table, Spacer(1, 16), Paragraph("Detalle del Servicio", styles["Heading3"])]

    service_table = Table(
        [
            ["Concepto", "Detalle", "Unidad", "Cant.", "Precio Unit.", "Total"],
            [
                order.service_name or "",
                order.service_details or "-",
                order.unit_of_measure or "",
                f"{float(order.quantity or 0):g}",
                _money(order.unit_price),
                _money(economics.total_value),
            ],
        ],
        repeatRows=1,
    )
    service_table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), PRIMARY),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("ALIGN", (3, 1), (-1, -1), "RIGHT"),
            ]
        )
    )
    story += [
        service_table,
        Spacer(1, 10),
        Paragraph(f"<b>Total Neto: {_money(economics.total_value)}</b>", right_style),
        Paragraph(f"Avance: {float(economics.progress_percent):.2f}%", right_style),
    ]

    logs = list(order.progress_logs or [])
    if logs:
        rows = [["Fecha", "Cantidad", "Certificación", "Facturación", "Notas"]]
        for log in logs:
            rows.append(
                [
                    _fmt_date(log.date),
                    f"{float(log.quantity or 0):g}",
                    _fmt_date(log.certification_date),
                    _fmt_date(log.billing_date),
                    log.notes or "",
                ]
            )
        progress_table = Table(rows, repeatRows=1)
        progress_table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f4f6")),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 8),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ]
            )
        )
        story += [Spacer(1, 16), Paragraph("Avances", styles["Heading3"]), progress_table]

    if order.observations:
        story += [
            Spacer(1, 16),
            Paragraph("Observaciones:", styles["Heading4"]),
            Paragraph(escape(order.observations), styles["Normal"]),
        ]

    story += [
        Spacer(1, 30),
        Paragraph(
            "Este documento es un comprobante generado electrónicamente.",
            ParagraphStyle("Footer", parent=styles["Normal"], fontSize=7, textColor=colors.grey),
        ),
    ]

    doc.build(story)
    return buffer.getvalue()
