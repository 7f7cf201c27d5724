# hmjaya/constants/statuses.py
from __future__ import annotations

# Search terms (English or Indonesian) accepted for ?status= filters.
STATUS_SEARCH_TERMS = {
    "DRAFT": ("draft", "konsep", "rancangan"),
    "PENDING": ("pending", "menunggu", "tertunda"),
    "SENT": ("sent", "terkirim", "dikirim"),
    "PAID": ("paid", "terbayar", "lunas"),
    "DELIVERED": ("delivered", "sampai"),
    "COMPLETED": ("completed", "selesai", "lengkap"),
    "CANCELLED": ("cancelled", "canceled", "dibatalkan", "batal"),
    "CANCELED": ("canceled", "cancelled", "dibatalkan", "batal"),
    "RETURNED": ("returned", "dikembalikan", "retur"),
    "OVERDUE": ("overdue", "terlambat", "lewat jatuh tempo"),
    "UNPAID": ("unpaid", "belum bayar", "belum dibayar"),
    "OVERPAID": ("overpaid", "lebih bayar", "kelebihan bayar"),
    "NEW": ("new", "baru"),
    "PROCESSING": ("processing", "diproses", "proses"),
    "PENDING_CONFIRMATION": ("pending_confirmation", "pending confirmation", "menunggu konfirmasi"),
    "IN_TRANSIT": ("in_transit", "in transit", "dalam perjalanan"),
    "READY_FOR_DELIVERY": ("ready_for_delivery", "ready for delivery", "siap kirim"),
    "CLEARED": ("cleared", "berhasil", "sukses"),
    "REJECTED": ("rejected", "ditolak"),
}

PURCHASE_ORDER_LABELS = {
    "PENDING": "Menunggu",
    "PROCESSING": "Diproses",
    "READY_FOR_DELIVERY": "Siap Kirim",
    "COMPLETED": "Selesai",
    "CANCELLED": "Dibatalkan",
}

PAYMENT_STATUS_LABELS = {
    "UNPAID": "Belum Bayar",
    "PAID": "Lunas",
    "OVERPAID": "Lebih Bayar",
}


def resolve_status(enum_cls, term):
    """Map a code or search term onto a member of `enum_cls`, or None."""
    raw = (str(term or "")).strip()
    if not raw or raw.upper() == "ALL":
        return None

    code = raw.upper().replace(" ", "_")
    if code in enum_cls.__members__:
        return enum_cls[code]

    needle = raw.lower()
    for name, terms in STATUS_SEARCH_TERMS.items():
        if name in enum_cls.__members__ and needle in terms:
            return enum_cls[name]
    return None
