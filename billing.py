"""
Billing summary: selected clients x selected months, oldest first, with totals and a period label.
render_billing_html produces the printable document opened in the browser's print dialog.
"""
from dataclasses import dataclass, field
from datetime import datetime
from html import escape

from entities import Project, TimeEntry, UserProfile
from utils import (
    MONTH_ABBR,
    MONTH_NAMES,
    calculate_earnings,
    format_currency,
    format_duration,
    format_time,
    from_epoch_ms,
)


@dataclass
class BillingSummary:
    entries: list[TimeEntry] = field(default_factory=list)
    total_hours: float = 0.0
    total_earnings: float = 0.0
    entry_count: int = 0
    period_label: str = ""


def _split_month(month: str) -> tuple[int, int]:
    year, mon = month.split("-", 1)
    return int(year), int(mon)


def period_label(months) -> str:
    """'giugno 2024' for one month; 'gen, feb 2024' within one year; 'dicembre 2023, gennaio 2024' across years."""
    ordered = sorted(months)
    if not ordered:
        return ""
    parts = [_split_month(m) for m in ordered]
    if len(parts) == 1:
        year, mon = parts[0]
        return f"{MONTH_NAMES[mon - 1]} {year}"
    years = {year for year, _ in parts}
    if len(years) == 1:
        return f"{', '.join(MONTH_ABBR[mon - 1] for _, mon in parts)} {parts[0][0]}"
    return ", ".join(f"{MONTH_NAMES[mon - 1]} {year}" for year, mon in parts)


def build_billing_summary(entries: list[TimeEntry], project_ids, months) -> BillingSummary:
    """Entries of the selected projects in the selected months (no year fallback), chronological."""
    project_ids = set(project_ids)
    months = set(months)
    if not project_ids or not months:
        return BillingSummary(period_label=period_label(months))
    selected = sorted(
        (e for e in entries if e.project_id in project_ids and e.month_key in months),
        key=lambda e: e.start_time,
    )
    return BillingSummary(
        entries=selected,
        total_hours=sum(e.duration or 0.0 for e in selected) / 3600,
        total_earnings=sum(calculate_earnings(e) for e in selected),
        entry_count=len(selected),
        period_label=period_label(months),
    )


def render_billing_html(
    summary: BillingSummary,
    projects: list[Project],
    profile: UserProfile | None = None,
    generated_at: datetime | None = None,
) -> str:
    """Printable billing document (self-contained HTML)."""
    generated_at = generated_at or datetime.now()
    names = {p.id: p.name for p in projects}
    client_names = sorted({names.get(e.project_id, "") for e in summary.entries} - {""})
    rows = []
    for e in summary.entries:
        expenses = e.expenses_total
        end = format_time(e.end_time) if e.end_time is not None else "..."
        rows.append(
            "<tr>"
            f"<td>{from_epoch_ms(e.start_time).strftime('%d/%m')}</td>"
            f"<td>{format_time(e.start_time)} - {end}</td>"
            f"<td>{escape(names.get(e.project_id, ''))}</td>"
            f"<td>{escape(e.description or '-')}</td>"
            f"<td class='num'>{format_duration(e.duration)[:5]}</td>"
            f"<td class='num'>{format_currency(e.hourly_rate or 0)}</td>"
            f"<td class='num'>{format_currency(expenses) if expenses > 0 else '-'}</td>"
            f"<td class='num'>{format_currency(calculate_earnings(e))}</td>"
            "</tr>"
        )
    if not rows:
        rows.append("<tr><td colspan='8' class='empty'>Nessuna voce presente per questo periodo.</td></tr>")
    issuer = ""
    if profile is not None:
        issuer = escape(profile.full_name or profile.email)
    return f"""<!DOCTYPE html>
<html lang="it">
<head>
<meta charset="utf-8">
<title>Riepilogo {escape(summary.period_label)}</title>
<style>
body {{ font-family: sans-serif; margin: 32px; color: #111; }}
table {{ width: 100%; border-collapse: collapse; font-size: 13px; }}
th, td {{ border-bottom: 1px solid #ddd; padding: 6px 8px; text-align: left; }}
td.num, th.num {{ text-align: right; }}
td.empty {{ text-align: center; color: #888; padding: 24px; }}
.totals {{ margin-top: 24px; text-align: right; font-size: 15px; }}
footer {{ margin-top: 40px; font-size: 11px; color: #888; }}
@media print {{ body {{ margin: 0; }} }}
</style>
</head>
<body onload="window.print()">
<h1>Riepilogo servizi</h1>
<p>{issuer}</p>
<p>Cliente: {escape(', '.join(client_names) or '-')}<br>Periodo: {escape(summary.period_label)}</p>
<table>
<thead><tr><th>Data</th><th>Orario</th><th>Cliente</th><th>Descrizione</th>
<th class="num">Ore</th><th class="num">Tariffa</th><th class="num">Spese</th><th class="num">Totale</th></tr></thead>
<tbody>
{chr(10).join(rows)}
</tbody>
</table>
<div class="totals">
<p>Servizi: {summary.entry_count}</p>
<p>Ore totali: {summary.total_hours:.2f}</p>
<p><strong>Totale: {format_currency(summary.total_earnings)}</strong></p>
</div>
<footer>Generato con Cronosheet - {generated_at.strftime('%d/%m/%Y')}</footer>
</body>
</html>
"""
