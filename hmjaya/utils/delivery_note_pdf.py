# hmjaya/utils/delivery_note_pdf.py

from __future__ import annotations

import io

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Table

from hmjaya.utils.invoice_pdf import DARK, GRAY, draw_company_header, draw_footer, fmt_date, table_style

DEFAULT_BOTTLES_PER_CRATE = 24


def render_delivery_note_pdf(note, company: dict) -> bytes:
    """Render a SURAT JALAN (NO DB writes). Returns PDF bytes."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4

    invoice = note.invoice
    draw_company_header(
        c, company, width, height,
        title="SURAT JALAN",
        meta_lines=[
            f"No. Surat Jalan: {note.code}",
            f"Pengiriman: {fmt_date(note.delivery_date)}",
            f"No. Invoice: {invoice.code if invoice else '-'}",
            f"Tgl. Invoice: {fmt_date(invoice.invoice_date) if invoice else '-'}",
        ],
    )

    y = height - 40 * mm
    customer = note.customer

    c.setFillColor(DARK)
    c.setFont("Helvetica-Bold", 10)
    c.drawString(18 * mm, y, "Kepada:")
    c.drawString(width / 2 + 2 * mm, y, "Informasi Pengiriman:")
    c.setFont("Helvetica", 9)
    c.drawString(18 * mm, y - 6 * mm, customer.name if customer else "-")
    if customer is not None and customer.address:
        c.drawString(18 * mm, y - 11 * mm, customer.address[:60])
    if customer is not None and customer.city:
        c.drawString(18 * mm, y - 16 * mm, customer.city)
    c.drawString(width / 2 + 2 * mm, y - 6 * mm, f"Driver: {note.driver_name}")
    c.drawString(width / 2 + 2 * mm, y - 11 * mm, f"Kendaraan: {note.vehicle_number}")

    y -= 26 * mm

    data = [["No", "Kode", "Nama Produk", "Krat", "Isi/Krat", "Jumlah Botol"]]
    total_crates = 0
    total_bottles = 0
    for idx, it in enumerate(invoice.items if invoice else [], start=1):
        product = it.product
        per_crate = (product.bottles_per_crate if product else None) or DEFAULT_BOTTLES_PER_CRATE
        bottles = it.quantity * per_crate
        total_crates += it.quantity
        total_bottles += bottles
        data.append([
            str(idx),
            product.code if product else "-",
            (product.name if product else "-")[:45],
            str(it.quantity),
            str(per_crate),
            str(bottles),
        ])
    data.append(["", "", "Total", str(total_crates), "", str(total_bottles)])

    table = Table(
        data,
        colWidths=[10 * mm, 30 * mm, 70 * mm, 18 * mm, 20 * mm, 26 * mm],
        hAlign="LEFT",
        repeatRows=1,
    )
    table.setStyle(table_style([
        ("ALIGN", (3, 1), (-1, -1), "CENTER"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
    ]))
    _, th = table.wrapOn(c, width - 36 * mm, height)
    table.drawOn(c, 18 * mm, y - th)
    y = y - th - 10 * mm

    if note.notes:
        c.setFont("Helvetica-Bold", 10)
        c.setFillColor(DARK)
        c.drawString(18 * mm, y, "Catatan:")
        c.setFont("Helvetica", 9)
        c.setFillColor(GRAY)
        c.drawString(18 * mm, y - 6 * mm, note.notes[:120])
        y -= 16 * mm

    # Signatures
    y -= 6 * mm
    c.setFillColor(DARK)
    c.setFont("Helvetica-Bold", 10)
    c.drawString(18 * mm, y, company.get("name") or "")
    y -= 6 * mm
    c.setFont("Helvetica", 9)
    cols = (18 * mm, 85 * mm, 150 * mm)
    for x, label in zip(cols, ("Gudang", "Driver", "Penerima")):
        c.drawString(x, y, label)

    y -= 22 * mm
    warehouse = note.warehouse_user.name if note.warehouse_user else "_________________"
    for x, name in zip(cols, (warehouse, note.driver_name, "_________________")):
        c.drawString(x, y, f"({name})")

    c.setStrokeColor(colors.HexColor("#e5e7eb"))
    draw_footer(c, company, width)

    c.showPage()
    c.save()

    pdf = buf.getvalue()
    buf.close()
    return pdf
