"""
Central constants for the sales pipeline: quote statuses, aging thresholds and
the picklists shared by forms, filters and the import pipeline.
"""
from __future__ import annotations

# Display order matters: the status dropdown and the "all statuses" filter follow it.
QUOTE_STATUSES: tuple[tuple[str, str], ...] = (
    ("draft", "Draft"),
    ("pending", "Pending"),
    ("sent", "Sent"),
    ("negotiating", "Negotiating"),
    ("awaiting_po", "Awaiting PO"),
    ("po_received", "PO Received"),
    ("won", "Won"),
    ("lost", "Lost"),
    ("expired", "Expired"),
    ("converted", "Converted"),
)
STATUS_LABELS: dict[str, str] = dict(QUOTE_STATUSES)
VALID_STATUSES = frozenset(STATUS_LABELS)

# Pipeline membership
ACTIVE_STATUSES = frozenset({"draft", "pending", "sent", "negotiating", "awaiting_po", "po_received"})
TERMINAL_STATUSES = frozenset({"won", "lost", "expired", "converted"})

# Funnel stages shown on the manager dashboard, in order.
FUNNEL_STAGES: tuple[str, ...] = ("draft", "sent", "negotiating", "awaiting_po", "po_received", "converted")

# Statuses the Praxis manual-entry form may set directly.
IMPORT_STATUSES: tuple[str, ...] = ("draft", "sent", "negotiating", "awaiting_po", "po_received")

# Aging thresholds (days since the quote was created)
AGING_FRESH_DAYS = 15
AGING_AGING_DAYS = 25
AGING_STALE_DAYS = 30

# Outlook used for weighted pipeline when a quote has none recorded.
DEFAULT_OUTLOOK_PERCENT = 50

BUILDING_TYPES: tuple[str, ...] = ("CUSTOM", "FLEET/STOCK", "GOVERNMENT", "Business")

LOST_REASONS: tuple[tuple[str, str], ...] = (
    ("price", "Price too high"),
    ("timing", "Timeline didn't work"),
    ("competitor", "Lost to competitor"),
    ("cancelled", "Project cancelled"),
    ("no_response", "No response"),
    ("scope_change", "Scope changed"),
    ("other", "Other"),
)
LOST_REASON_LABELS: dict[str, str] = dict(LOST_REASONS)

FACTORIES: tuple[str, ...] = (
    "NWBS", "WM-EAST", "WM-WEST", "MM", "SSI", "MS", "MG", "SEMO", "PMI", "AMTEX", "BRIT", "CB", "IND", "MRS",
)

# Praxis factory picklist: "CODE - Name"; the code is what gets stored.
PRAXIS_FACTORY_OPTIONS: tuple[str, ...] = (
    "AMT - AMTEX",
    "BUSA - Britco USA",
    "C&B - C&B Custom Modular",
    "IBI - Indicom Buildings",
    "MRS - MR Steel",
    "NWBS - Northwest Building Systems",
    "PMI - Phoenix Modular",
    "PRM - Pro-Mod Manufacturing",
    "SMM - Southeast Modular",
    "SNB - Star-Built",
    "SSI - Specialized Structures",
    "WM-EAST - Whitley East",
    "WM-EVERGREEN - Whitley Evergreen",
    "WM-ROCHESTER - Whitley Rochester",
    "WM-SOUTH - Whitley South",
)

PRODUCT_TYPES: tuple[tuple[str, str], ...] = (
    ("modular_building", "Modular Building"),
    ("portable_building", "Portable Building"),
    ("custom_structure", "Custom Structure"),
    ("renovation", "Renovation"),
    ("other", "Other"),
)

PAYMENT_TERMS: tuple[tuple[str, str], ...] = (
    ("net_30", "Net 30"),
    ("net_60", "Net 60"),
    ("50_50", "50% Deposit / 50% on Delivery"),
    ("progress", "Progress Payments"),
    ("custom", "Custom Terms"),
)

COMPANY_TYPES: tuple[tuple[str, str], ...] = (
    ("general", "General"),
    ("dealer", "Dealer"),
    ("direct", "Direct"),
    ("contractor", "Contractor"),
    ("developer", "Developer"),
    ("government", "Government"),
)

CUSTOMER_SOURCES: tuple[tuple[str, str], ...] = (
    ("referral", "Referral"),
    ("website", "Website"),
    ("trade_show", "Trade Show"),
    ("cold_call", "Cold Call"),
    ("existing", "Existing Customer"),
    ("other", "Other"),
)

ACTIVITY_TYPES: tuple[tuple[str, str], ...] = (
    ("call", "Call"),
    ("email", "Email"),
    ("meeting", "Meeting"),
    ("note", "Note"),
    ("status_change", "Status Change"),
    ("other", "Other"),
)
# status_change entries are written by the workflow, never by hand.
MANUAL_ACTIVITY_TYPES = frozenset({"call", "email", "meeting", "note", "other"})

SET_TYPES: tuple[str, ...] = ("PAD", "PIERS", "ABOVE GRADE SET")
SPRINKLER_TYPES: tuple[str, ...] = ("N/A", "Wet", "Dry")
OCCUPANCY_TYPES: tuple[str, ...] = ("A", "A-1", "A-2", "A-3", "B", "E", "F", "H", "I", "I-2", "M", "R", "S", "U")

SALES_ROLES: tuple[str, ...] = ("Sales_Rep", "Sales_Manager")

IMPORT_SOURCES = frozenset({"manual_entry", "csv_import", "praxis_export"})


def status_label(status: str | None) -> str:
    return STATUS_LABELS.get(status or "", STATUS_LABELS["draft"])


def lost_reason_label(reason: str | None) -> str:
    if not reason:
        return ""
    return LOST_REASON_LABELS.get(reason, reason)


def factory_code(option: str | None) -> str:
    """'NWBS - Northwest Building Systems' -> 'NWBS'. Plain codes pass through."""
    return (option or "").split(" - ", 1)[0].strip()
