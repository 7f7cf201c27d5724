# hmjaya/utils/invoice_pdf.py

from __future__ import annotations

import io
from datetime import date, datetime

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Table, TableStyle

from hmjaya.utils.parsers import safe_enum_value

MONTHS_ID = (
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
)

# --- Brand colors ---
NAVY = colors.HexColor("#1e3a5f")
GRAY = colors.HexColor("#6b7280")
DARK = colors.HexColor("#111827")
LINE = colors.HexColor("#e5e7eb")
HEAD_BG = colors.HexColor("#f3f4f6")


def fmt_date(d):
    """12 Maret 2026"""
    if not d:
        return "-"
    if isinstance(d, (datetime, date)):
        return f"{d.day} {MONTHS_ID[d.month - 1]} {d.year}"
    return str(d)


def money(v, currency="Rp"):
    """Rupiah with dot thousands separators: Rp 12.000"""
    if v is None:
        return "-"
    try:
        return f"{currency} {float(v):,.0f}".replace(",", ".")
    except (TypeError, ValueError):
        return f"{currency} {v}"


def table_style(extra=()):
    return TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEAD_BG),
        ("TEXTCOLOR", (0, 0), (-1, 0), DARK),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.5, LINE),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("PADDING", (0, 0), (-1, -1), 5),
        *extra,
    ])


def draw_company_header(c, company: dict, width, height, title: str, meta_lines):
    c.setFillColor(NAVY)
    bar = max(28, 16 + 5 * len(meta_lines)) * mm
    c.rect(0, height - bar, width, bar, stroke=0, fill=1)

    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 15)
    c.drawString(18 * mm, height - 13 * mm, company.get("name") or "")
    c.setFont("Helvetica", 8)
    c.drawString(18 * mm, height - 19 * mm, (company.get("address") or "")[:95])
    if company.get("phone"):
        c.drawString(18 * mm, height - 24 * mm, f"Telp: {company['phone']}")

    c.setFont("Helvetica-Bold", 13)
    c.drawRightString(width - 18 * mm, height - 13 * mm, title)
    c.setFont("Helvetica", 8)
    for i, line in enumerate(meta_lines):
        c.drawRightString(width - 18 * mm, height - (19 + 5 * i) * mm, line)


def draw_footer(c, company: dict, width):
    c.setFillColor(LINE)
    c.rect(0, 0, width, 12 * mm, stroke=0, fill=1)
    c.setFillColor(colors.HexColor("#374151"))
    c.setFont("Helvetica", 8)
    c.drawString(18 * mm, 4 * mm, f"{company.get('name') or ''} - {company.get('city') or ''}")
    c.setFillColor(GRAY)
    c.drawRightString(width - 18 * mm, 4 * mm, f"Dicetak: {fmt_date(date.today())}")


def render_invoice_pdf(invoice, company: dict, currency: str = "Rp") -> bytes:
    """
    Render an Invoice PDF (NO DB writes).
    `company` comes from hmjaya.config.company_context(). Returns PDF bytes.
    """
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4

    draw_company_header(
        c, company, width, height,
        title=f"INVOICE {invoice.code}",
        meta_lines=[
            f"Tanggal: {fmt_date(invoice.invoice_date)}",
            f"Jatuh tempo: {fmt_date(invoice.due_date)}",
            f"Status: {safe_enum_value(invoice.status)} / {safe_enum_value(invoice.payment_status)}",
        ],
    )

    y = height - 38 * mm

    # Customer box
    customer = invoice.customer
    c.setFillColor(DARK)
    c.setFont("Helvetica-Bold", 11)
    c.drawString(18 * mm, y, "Kepada")
    y -= 6 * mm

    c.setStrokeColor(LINE)
    c.setFillColor(colors.white)
    c.roundRect(18 * mm, y - 24 * mm, width / 2 - 22 * mm, 24 * mm, 6, stroke=1, fill=1)

    c.setFillColor(DARK)
    c.setFont("Helvetica-Bold", 10)
    c.drawString(22 * mm, y - 7 * mm, customer.name if customer else "-")
    c.setFont("Helvetica", 9)
    line_y = y - 13 * mm
    if customer is not None:
        for text in (customer.address, customer.city, customer.phone):
            if text:
                c.drawString(22 * mm, line_y, text[:60])
                line_y -= 5 * mm

    # Order reference box
    right_x = width / 2 + 2 * mm
    c.setFillColor(colors.white)
    c.roundRect(right_x, y - 24 * mm, width - right_x - 18 * mm, 24 * mm, 6, stroke=1, fill=1)
    c.setFillColor(DARK)
    c.setFont("Helvetica", 9)
    po = invoice.purchase_order
    c.drawString(right_x + 4 * mm, y - 8 * mm, f"No. PO: {po.code if po else '-'}")
    c.drawString(right_x + 4 * mm, y - 13 * mm, f"Jenis: {safe_enum_value(invoice.type)}")
    note = invoice.delivery_note
    c.drawString(right_x + 4 * mm, y - 18 * mm, f"Surat Jalan: {note.code if note else '-'}")

    y -= 32 * mm

    # Items table
    data = [["No", "Produk", "Qty", "Harga", "Diskon", "Jumlah"]]
    for idx, it in enumerate(invoice.items, start=1):
        disc = it.discount or 0
        if disc and safe_enum_value(it.discount_type) == "PERCENTAGE":
            disc_text = f"{disc:g}%"
        else:
            disc_text = money(disc, currency) if disc else "-"
        data.append([
            str(idx),
            f"{it.product.code} - {it.product.name}"[:48] if it.product else "-",
            f"{it.quantity} {it.product.unit if it.product else ''}".strip(),
            money(it.price, currency),
            disc_text,
            money(it.total_price, currency),
        ])
    if len(data) == 1:
        data.append(["-", "(Tidak ada item)", "-", "-", "-", "-"])

    table = Table(
        data,
        colWidths=[10 * mm, 66 * mm, 20 * mm, 27 * mm, 22 * mm, 29 * mm],
        hAlign="LEFT",
        repeatRows=1,
    )
    table.setStyle(table_style([("ALIGN", (2, 1), (-1, -1), "RIGHT")]))
    _, th = table.wrapOn(c, width - 36 * mm, height)
    table.drawOn(c, 18 * mm, y - th)
    y = y - th - 8 * mm

    # Totals
    rows = [("Subtotal", invoice.subtotal)]
    if invoice.discount:
        rows.append(("Diskon", -discount_value(invoice)))
    rows.append((f"Pajak ({invoice.tax_percentage:g}%)", invoice.tax_amount))
    if invoice.shipping_cost:
        rows.append(("Ongkos kirim", invoice.shipping_cost))
    rows.append(("Total", invoice.total_amount))
    rows.append(("Dibayar", invoice.paid_amount))
    rows.append(("Sisa tagihan", invoice.remaining_amount))

    block_x = width - 18 * mm
    for label, value in rows:
        bold = label in ("Total", "Sisa tagihan")
        c.setFont("Helvetica-Bold" if bold else "Helvetica", 10 if bold else 9)
        c.setFillColor(DARK if bold else GRAY)
        c.drawRightString(block_x - 42 * mm, y, label)
        c.setFillColor(DARK)
        c.drawRightString(block_x, y, money(value, currency))
        y -= 6 * mm

    y -= 4 * mm

    # Bank accounts
    accounts = company.get("bank_accounts") or []
    if accounts:
        c.setFont("Helvetica-Bold", 10)
        c.setFillColor(DARK)
        c.drawString(18 * mm, y, "Pembayaran ke")
        c.setFont("Helvetica", 9)
        for acc in accounts:
            y -= 5 * mm
            c.drawString(
                18 * mm, y,
                f"{acc['bank_name']} {acc['account_number']} a.n. {acc['account_name']}",
            )
        y -= 8 * mm

    if invoice.notes:
        c.setFont("Helvetica-Bold", 10)
        c.setFillColor(DARK)
        c.drawString(18 * mm, y, "Catatan")
        c.setFont("Helvetica", 9)
        c.setFillColor(GRAY)
        c.drawString(18 * mm, y - 6 * mm, invoice.notes[:120])

    draw_footer(c, company, width)

    c.showPage()
    c.save()

    pdf = buf.getvalue()
    buf.close()
    return pdf


def discount_value(invoice) -> float:
    """Invoice-level discount in money, whatever its type."""
    if safe_enum_value(invoice.discount_type) == "PERCENTAGE":
        return round((invoice.subtotal or 0) * (invoice.discount or 0) / 100)
    return invoice.discount or 0
