# count_hub/services/sessions.py
from __future__ import annotations
from typing import Dict, Iterable, List

from count_hub.models import ScanEvent, SessionSummary


def summarize(all_scan_events: Iterable[ScanEvent]) -> List[SessionSummary]:
    """
    Group scan events by invoice number into resumable sessions.

    total_items_scanned counts scan actions, not units. Newest activity
    first; equal timestamps keep the order in which invoices first appear.
    """
    groups: Dict[str, dict] = {}
    for ev in all_scan_events:
        grp = groups.get(ev.invoice_number)
        if grp is None:
            grp = groups[ev.invoice_number] = {
                "last_activity": ev.timestamp,
                "count": 0,
                "users": [],
            }
        grp["last_activity"] = max(grp["last_activity"], ev.timestamp)
        grp["count"] += 1
        if ev.user_id not in grp["users"]:
            grp["users"].append(ev.user_id)

    summaries = [
        SessionSummary(
            invoice_number=invoice_number,
            last_activity=grp["last_activity"],
            total_items_scanned=grp["count"],
            users_involved=list(grp["users"]),
        )
        for invoice_number, grp in groups.items()
    ]
    # sorted() is stable
    return sorted(summaries, key=lambda s: s.last_activity, reverse=True)
