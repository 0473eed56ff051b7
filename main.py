"""
Cronosheet: Flet UI for logging shifts against clients, billing summaries, reports and user admin.
Without a configured backend a setup screen offers demo mode or local storage.
Unapproved accounts stop at a "pending approval" screen.
"""
import asyncio
import logging
import webbrowser
from datetime import date, datetime
from pathlib import Path
from typing import Callable

import flet as ft

from app_state import AppState, build_entry, load_profile
from auth import SIGNED_IN, AuthService, Session
from billing import build_billing_summary, render_billing_html
from config import build_demo_store, build_login_store, load_settings, setup_logging
from entities import (
    STATUS_ACTIVE,
    STATUS_PRO,
    STATUS_TRIAL,
    SUBSCRIPTION_STATUSES,
    TRIAL_DAYS,
    Expense,
    Project,
    Shift,
    TimeEntry,
    UserProfile,
)
from filters import EntryFilter, available_periods, months_of_year
from reports import WINDOW_LABELS, WINDOWS, LAST_7_DAYS, build_report
from utils import (
    COLORS,
    DATE_FMT,
    MONTH_ABBR,
    calculate_earnings,
    elapsed_seconds,
    format_currency,
    format_date,
    format_duration,
    format_duration_human,
    format_time,
    generate_id,
    group_entries_by_day,
    is_night_shift,
    parse_date,
    parse_time,
)

__version__ = "v0.1.0"

logger = logging.getLogger(__name__)

VIEW_TIMESHEET = "timesheet"
VIEW_REPORTS = "reports"
VIEW_CLIENTS = "clients"
VIEW_BILLING = "billing"
VIEW_PROFILE = "profile"
VIEW_ADMIN = "admin"

PLAN_LABELS = {
    "trial": "Start (prova)",
    "active": "Attivo",
    "pro": "Pro",
    "elite": "Elite",
    "expired": "Scaduto",
}


def _parse_amount(s: str) -> float | None:
    """Parse '12,50' or '12.50'; None if invalid."""
    s = (s or "").strip().replace(",", ".")
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def _month_label(month: str) -> str:
    year, mon = month.split("-", 1)
    return f"{MONTH_ABBR[int(mon) - 1]} {year}"


def _default_export_dir() -> Path:
    downloads = Path.home() / "Downloads"
    if downloads.is_dir():
        return downloads
    exports_dir = Path(__file__).resolve().parent / "exports"
    exports_dir.mkdir(exist_ok=True)
    return exports_dir


class CronosheetApp:
    """Flet UI: holds page, state, and view selections; tab builders are methods."""

    def __init__(self, page: ft.Page, state: AppState) -> None:
        self.page = page
        self.state = state
        self.view = VIEW_TIMESHEET
        self.body_ref: ft.Ref[ft.Container] = ft.Ref()
        self.timer_label_ref: ft.Ref[ft.Text] = ft.Ref()
        self.timer_loop_running = False
        self.entry_filter: EntryFilter | None = None
        self.billing_project_ids: set[str] | None = None
        self.billing_months: set[str] = {date.today().strftime("%Y-%m")}
        self.report_window = LAST_7_DAYS
        self.admin_profiles: list[UserProfile] = []

    # --- Shell ---

    def setup(self, *, logout_callback: Callable[[], None] | None = None) -> None:
        page = self.page
        profile = self.state.profile
        page.title = f"Cronosheet {__version__} - {profile.email}"

        views = [VIEW_TIMESHEET, VIEW_REPORTS, VIEW_CLIENTS, VIEW_BILLING, VIEW_PROFILE]
        destinations = [
            ft.NavigationRailDestination(icon=ft.Icons.SCHEDULE, selected_icon=ft.Icons.SCHEDULE, label="Registro"),
            ft.NavigationRailDestination(icon=ft.Icons.ASSESSMENT, selected_icon=ft.Icons.ASSESSMENT, label="Report"),
            ft.NavigationRailDestination(icon=ft.Icons.BUSINESS, selected_icon=ft.Icons.BUSINESS, label="Clienti"),
            ft.NavigationRailDestination(icon=ft.Icons.RECEIPT_LONG, selected_icon=ft.Icons.RECEIPT_LONG, label="Fatturazione"),
            ft.NavigationRailDestination(icon=ft.Icons.PERSON, selected_icon=ft.Icons.PERSON, label="Profilo"),
        ]
        if profile.is_admin:
            views.append(VIEW_ADMIN)
            destinations.append(
                ft.NavigationRailDestination(icon=ft.Icons.ADMIN_PANEL_SETTINGS, selected_icon=ft.Icons.ADMIN_PANEL_SETTINGS, label="Admin"),
            )
        if logout_callback:
            destinations.append(
                ft.NavigationRailDestination(icon=ft.Icons.LOGOUT, selected_icon=ft.Icons.LOGOUT, label="Esci"),
            )

        def on_rail_change(e):
            idx = e.control.selected_index
            if logout_callback and idx == len(destinations) - 1:
                e.control.selected_index = views.index(self.view)
                page.update()
                logout_callback()
                return
            self.view = views[idx]
            if self.view == VIEW_ADMIN:
                page.run_task(self._load_admin_profiles)
            self.render()

        rail = ft.NavigationRail(
            selected_index=0,
            extended=True,
            min_extended_width=180,
            label_type=ft.NavigationRailLabelType.ALL,
            destinations=destinations,
            on_change=on_rail_change,
        )
        body = ft.Container(ref=self.body_ref, content=ft.ProgressRing(), expand=True)
        top_bar = ft.Row(
            [
                ft.Text(
                    f"{profile.email} · {self.state.store.backend_description()}",
                    size=14,
                    color=ft.Colors.ON_SURFACE_VARIANT,
                ),
            ],
            alignment=ft.MainAxisAlignment.END,
            tight=True,
        )
        page.add(
            ft.Column(
                [top_bar, ft.Row([rail, ft.VerticalDivider(width=1), body], expand=True)],
                expand=True,
            )
        )

    def render(self) -> None:
        builders = {
            VIEW_TIMESHEET: self._build_timesheet_tab,
            VIEW_REPORTS: self._build_reports_tab,
            VIEW_CLIENTS: self._build_clients_tab,
            VIEW_BILLING: self._build_billing_tab,
            VIEW_PROFILE: self._build_profile_tab,
            VIEW_ADMIN: self._build_admin_tab,
        }
        if self.body_ref.current:
            self.body_ref.current.content = builders[self.view]()
        self.page.update()

    def _snack(self, message: str) -> None:
        self.page.snack_bar = ft.SnackBar(ft.Text(message), open=True)
        self.page.update()

    def _confirm(self, title: str, message: str, on_yes: Callable[[], None]) -> None:
        page = self.page

        def _on_no(_):
            dialog.open = False
            page.update()

        def _on_yes(_):
            dialog.open = False
            page.update()
            on_yes()

        dialog = ft.AlertDialog(
            title=ft.Text(title),
            content=ft.Text(message),
            actions=[
                ft.TextButton("Annulla", on_click=_on_no),
                ft.ElevatedButton("Conferma", on_click=_on_yes),
            ],
        )
        page.overlay.append(dialog)
        dialog.open = True
        page.update()

    async def reload(self) -> None:
        await self.state.reload()
        self.render()

    # --- Mutations (await write, then full reload) ---

    async def _save_entry(self, entry: TimeEntry) -> None:
        saved = await self.state.save_entry(entry)
        self.render()
        self._snack("Servizio salvato." if saved else "Salvataggio non riuscito.")

    async def _delete_entry(self, entry_id: str) -> None:
        await self.state.delete_entry(entry_id)
        self.render()

    async def _save_project(self, project: Project, is_new: bool) -> None:
        saved = await self.state.save_project(project)
        if saved and is_new and self.entry_filter is not None:
            self.entry_filter = self.entry_filter.toggle_project(saved.id)
        self.render()
        self._snack("Cliente salvato." if saved else "Salvataggio non riuscito.")

    async def _delete_project(self, project_id: str) -> None:
        await self.state.delete_project(project_id)
        self.render()

    async def _start_timer(self, project_id: str, description: str) -> None:
        try:
            await self.state.start_timer(project_id, description)
        except ValueError as err:
            self._snack(str(err))
            return
        self.render()

    async def _stop_timer(self) -> None:
        stopped = await self.state.stop_timer()
        self.render()
        if stopped is not None:
            self._snack(f"Timer fermato: {format_duration_human(stopped.duration)}.")

    async def _timer_loop(self) -> None:
        if self.timer_loop_running:
            return
        self.timer_loop_running = True
        try:
            while self.state.running_entry() is not None:
                await asyncio.sleep(1)
                running = self.state.running_entry()
                if running is None or not self.timer_label_ref.current:
                    break
                self.timer_label_ref.current.value = format_duration(elapsed_seconds(running))
                self.page.update()
        finally:
            self.timer_loop_running = False

    # --- Timesheet ---

    def _set_filter(self, new_filter: EntryFilter) -> None:
        self.entry_filter = new_filter
        self.render()

    def _build_timer_row(self) -> ft.Control:
        page = self.page
        running = self.state.running_entry()
        if running is not None:
            project = self.state.project_by_id(running.project_id)
            page.run_task(self._timer_loop)
            return ft.Row(
                [
                    ft.Icon(ft.Icons.TIMER, color=ft.Colors.GREEN),
                    ft.Text(project.name if project else "?", weight=ft.FontWeight.W_500),
                    ft.Text(running.description or "", expand=True),
                    ft.Text(
                        format_duration(elapsed_seconds(running)),
                        ref=self.timer_label_ref,
                        size=20,
                        weight=ft.FontWeight.BOLD,
                    ),
                    ft.ElevatedButton("Stop", icon=ft.Icons.STOP, on_click=lambda _: page.run_task(self._stop_timer)),
                ],
                spacing=12,
            )
        project_dd = ft.Dropdown(
            label="Cliente",
            width=220,
            value=self.state.projects[0].id if self.state.projects else None,
            options=[ft.DropdownOption(key=p.id, text=p.name) for p in self.state.projects],
        )
        description_tf = ft.TextField(label="Cosa stai facendo?", expand=True)

        def on_start(_):
            if not project_dd.value:
                self._snack("Seleziona un cliente.")
                return
            page.run_task(self._start_timer, project_dd.value, (description_tf.value or "").strip())

        return ft.Row(
            [
                project_dd,
                description_tf,
                ft.ElevatedButton("Avvia", icon=ft.Icons.PLAY_ARROW, on_click=on_start),
            ],
            spacing=12,
        )

    def _build_filter_bar(self, years: list[str], months: list[str]) -> ft.Control:
        flt = self.entry_filter
        year_dd = ft.Dropdown(
            label="Anno",
            width=140,
            value=flt.year,
            options=[ft.DropdownOption(key=y, text=y) for y in years],
            on_select=lambda e: self._set_filter(self.entry_filter.with_year(e.control.value)),
        )
        month_boxes = [
            ft.Checkbox(
                label=MONTH_ABBR[int(m[5:]) - 1],
                value=m in flt.months,
                on_change=lambda e, m=m: self._set_filter(self.entry_filter.toggle_month(m)),
            )
            for m in sorted(months_of_year(months, flt.year))
        ]
        project_boxes = [
            ft.Checkbox(
                label=p.name,
                value=p.id in flt.project_ids,
                on_change=lambda e, pid=p.id: self._set_filter(self.entry_filter.toggle_project(pid)),
            )
            for p in self.state.projects
        ]
        return ft.Column(
            [
                ft.Row(
                    [
                        ft.Icon(ft.Icons.FILTER_LIST),
                        year_dd,
                        ft.Row(month_boxes or [ft.Text("Nessun mese con servizi: mostro tutto l'anno.", size=12)], wrap=True, expand=True),
                    ],
                    spacing=12,
                ),
                ft.Row(
                    project_boxes
                    + [
                        ft.TextButton("Tutti", on_click=lambda _: self._set_filter(self.entry_filter.select_all_projects(self.state.projects))),
                        ft.TextButton("Nessuno", on_click=lambda _: self._set_filter(self.entry_filter.clear_projects())),
                    ],
                    wrap=True,
                ),
            ],
            spacing=4,
        )

    def _build_entry_row(self, entry: TimeEntry) -> ft.Control:
        page = self.page
        project = self.state.project_by_id(entry.project_id)
        end = format_time(entry.end_time) if entry.end_time is not None else "..."
        duration = entry.duration if entry.end_time is not None else elapsed_seconds(entry)
        controls: list[ft.Control] = [
            ft.Container(width=10, height=10, bgcolor=project.color if project else ft.Colors.GREY, border_radius=5),
            ft.Text(f"{format_time(entry.start_time)} - {end}", size=13, width=110),
            ft.Text(project.name if project else "?", size=13, weight=ft.FontWeight.W_500, width=180),
            ft.Text(entry.description or "-", size=13, expand=True),
        ]
        if entry.is_night_shift:
            controls.append(ft.Icon(ft.Icons.NIGHTLIGHT_ROUND, size=16, color=ft.Colors.INDIGO))
        controls += [
            ft.Text(format_duration(duration)[:5], size=13, width=60),
            ft.Text(format_currency(calculate_earnings(entry)), size=13, width=100),
            ft.IconButton(icon=ft.Icons.EDIT, on_click=lambda _, e=entry: self._open_entry_dialog(e)),
            ft.IconButton(
                icon=ft.Icons.DELETE_OUTLINE,
                on_click=lambda _, eid=entry.id: self._confirm(
                    "Eliminare questo servizio?",
                    "L'operazione non si può annullare.",
                    lambda: page.run_task(self._delete_entry, eid),
                ),
            ),
        ]
        return ft.Row(controls, spacing=8)

    def _build_timesheet_tab(self) -> ft.Control:
        state = self.state
        profile = state.profile
        if self.entry_filter is None:
            self.entry_filter = EntryFilter.default(state.projects)
        years, months = available_periods(state.entries)
        filtered = self.entry_filter.apply(state.entries)
        groups = group_entries_by_day(filtered)
        subtitle = f"Piano: {PLAN_LABELS.get(profile.subscription_status, profile.subscription_status)}"
        if profile.subscription_status == STATUS_TRIAL:
            subtitle += f" (Scade: {profile.effective_trial_end().strftime('%d/%m/%Y')})"

        def on_new(_):
            if not state.projects:
                self._snack('Devi prima creare almeno una postazione nella sezione "Clienti".')
                return
            self._open_entry_dialog(None)

        if not state.entries:
            log_controls: list[ft.Control] = [
                ft.Text("Nessun servizio registrato. Aggiungi un nuovo servizio per iniziare.", size=14),
            ]
        elif not groups:
            log_controls = [ft.Text("Nessun servizio per i filtri selezionati.", size=14)]
        else:
            log_controls = []
            for group in groups:
                day_ms = int(datetime.strptime(group.date, DATE_FMT).timestamp() * 1000)
                log_controls.append(
                    ft.Row(
                        [
                            ft.Text(format_date(day_ms), size=15, weight=ft.FontWeight.BOLD, expand=True),
                            ft.Text(format_duration_human(group.total_duration), size=13),
                        ],
                    )
                )
                log_controls.extend(self._build_entry_row(e) for e in group.entries)
                log_controls.append(ft.Divider(height=1))

        total_earnings = sum(calculate_earnings(e) for e in filtered)
        total_seconds = sum(e.duration or 0.0 for e in filtered)
        return ft.Column(
            [
                ft.Row(
                    [
                        ft.Column(
                            [
                                ft.Text("Registro servizi", size=24, weight=ft.FontWeight.BOLD),
                                ft.Text(subtitle, size=12, color=ft.Colors.ON_SURFACE_VARIANT),
                            ],
                            expand=True,
                        ),
                        ft.ElevatedButton("Nuovo servizio", icon=ft.Icons.ADD, on_click=on_new),
                    ],
                ),
                ft.Container(height=8),
                self._build_timer_row() if state.projects else ft.Container(),
                ft.Container(height=8),
                self._build_filter_bar(years, months),
                ft.Text(
                    f"{len(filtered)} servizi · {format_duration_human(total_seconds)} · {format_currency(total_earnings)}",
                    size=13,
                    weight=ft.FontWeight.W_500,
                ),
                ft.Container(height=8),
                ft.Container(content=ft.Column(log_controls, scroll=ft.ScrollMode.AUTO), expand=True),
            ],
            expand=True,
            horizontal_alignment=ft.CrossAxisAlignment.START,
        )

    def _open_entry_dialog(self, entry: TimeEntry | None) -> None:
        """Create/edit dialog: client, date, start/end with shift presets, rate, expenses, night flag."""
        page = self.page
        state = self.state
        project = state.project_by_id(entry.project_id) if entry else state.projects[0]
        expense_rows: list[tuple[str, ft.TextField, ft.TextField]] = []
        expenses_col = ft.Column(spacing=4)
        presets_row = ft.Row(wrap=True, spacing=8)

        project_dd = ft.Dropdown(
            label="Cliente / Postazione",
            width=320,
            value=project.id if project else None,
            options=[ft.DropdownOption(key=p.id, text=p.name) for p in state.projects],
        )
        date_tf = ft.TextField(
            label="Data (AAAA-MM-GG)",
            width=200,
            value=(entry.started_at if entry else datetime.now()).strftime(DATE_FMT),
        )
        start_tf = ft.TextField(label="Inizio (HH:MM)", width=150, value=format_time(entry.start_time) if entry else "08:00")
        end_tf = ft.TextField(
            label="Fine (HH:MM)",
            width=150,
            value=format_time(entry.end_time) if entry and entry.end_time is not None else "16:00",
        )
        rate_value = entry.hourly_rate if entry else (project.default_hourly_rate if project else 0.0)
        rate_tf = ft.TextField(label="Tariffa oraria (€)", width=150, value=f"{rate_value or 0:.2f}")
        description_tf = ft.TextField(label="Note", width=470, value=entry.description if entry else "")
        night_cb = ft.Checkbox(label="Turno notturno", value=bool(entry.is_night_shift) if entry else False)

        def refresh_expenses():
            expenses_col.controls = [
                ft.Row(
                    [
                        desc_tf,
                        amount_tf,
                        ft.IconButton(icon=ft.Icons.CLOSE, on_click=lambda _, xid=xid: remove_expense(xid)),
                    ],
                    spacing=8,
                )
                for xid, desc_tf, amount_tf in expense_rows
            ]
            page.update()

        def add_expense(expense: Expense | None = None, *, update: bool = True):
            expense_rows.append(
                (
                    expense.id if expense else generate_id(),
                    ft.TextField(label="Spesa", width=260, value=expense.description if expense else ""),
                    ft.TextField(label="Importo (€)", width=140, value=f"{expense.amount:.2f}" if expense else "0"),
                )
            )
            if update:
                refresh_expenses()

        def remove_expense(xid: str):
            expense_rows[:] = [r for r in expense_rows if r[0] != xid]
            refresh_expenses()

        def apply_preset(shift: Shift):
            start_tf.value = shift.start_time
            end_tf.value = shift.end_time
            night_cb.value = is_night_shift(shift.start_time, shift.end_time)
            page.update()

        def refresh_presets(selected: Project | None):
            presets_row.controls = [
                ft.OutlinedButton(f"{s.name} {s.start_time}-{s.end_time}", on_click=lambda _, s=s: apply_preset(s))
                for s in (selected.shifts if selected else [])
            ]

        def on_project_change(e):
            selected = state.project_by_id(e.control.value)
            refresh_presets(selected)
            if selected is not None:
                if entry is not None and selected.id == entry.project_id:
                    rate_tf.value = f"{entry.hourly_rate or 0:.2f}"
                else:
                    rate_tf.value = f"{selected.default_hourly_rate:.2f}"
            page.update()

        project_dd.on_select = on_project_change
        for x in (entry.expenses if entry else []):
            add_expense(x, update=False)
        refresh_presets(project)

        def on_cancel(_):
            dialog.open = False
            page.update()

        def on_save(_):
            selected = state.project_by_id(project_dd.value or "")
            day = parse_date(date_tf.value)
            rate = _parse_amount(rate_tf.value)
            if selected is None:
                self._snack("Seleziona un cliente.")
                return
            if day is None:
                date_tf.error_text = "Formato AAAA-MM-GG"
                page.update()
                return
            if rate is None or rate < 0:
                rate_tf.error_text = "Tariffa non valida"
                page.update()
                return
            expenses = []
            for xid, desc_tf, amount_tf in expense_rows:
                amount = _parse_amount(amount_tf.value)
                if amount is None:
                    amount_tf.error_text = "Importo non valido"
                    page.update()
                    return
                expenses.append(Expense(id=xid, description=(desc_tf.value or "").strip(), amount=amount))
            try:
                new_entry = build_entry(
                    selected,
                    day,
                    start_tf.value,
                    end_tf.value,
                    description=(description_tf.value or "").strip(),
                    expenses=expenses,
                    night_shift=bool(night_cb.value),
                    hourly_rate=rate,
                    existing=entry,
                )
            except ValueError as err:
                self._snack(str(err))
                return
            dialog.open = False
            page.update()
            page.run_task(self._save_entry, new_entry)

        dialog = ft.AlertDialog(
            title=ft.Text("Modifica servizio" if entry else "Nuovo servizio"),
            content=ft.Column(
                [
                    project_dd,
                    date_tf,
                    presets_row,
                    ft.Row([start_tf, end_tf, rate_tf], spacing=8),
                    night_cb,
                    description_tf,
                    ft.Text("Spese", weight=ft.FontWeight.W_500),
                    expenses_col,
                    ft.TextButton("Aggiungi spesa", icon=ft.Icons.ADD, on_click=lambda _: add_expense()),
                ],
                tight=True,
                scroll=ft.ScrollMode.AUTO,
                width=520,
            ),
            actions=[
                ft.TextButton("Annulla", on_click=on_cancel),
                ft.ElevatedButton("Salva", on_click=on_save),
            ],
        )
        page.overlay.append(dialog)
        dialog.open = True
        refresh_expenses()

    # --- Clients ---

    def _build_clients_tab(self) -> ft.Control:
        page = self.page
        rows: list[ft.Control] = []
        for p in self.state.projects:
            shifts = ", ".join(f"{s.name} {s.start_time}-{s.end_time}" for s in p.shifts) or "Nessun turno predefinito"
            rows.append(
                ft.ListTile(
                    leading=ft.Container(width=16, height=16, bgcolor=p.color, border_radius=8),
                    title=ft.Text(p.name, weight=ft.FontWeight.W_500),
                    subtitle=ft.Text(f"{format_currency(p.default_hourly_rate)}/h · {shifts}", size=12),
                    trailing=ft.Row(
                        [
                            ft.IconButton(icon=ft.Icons.EDIT, on_click=lambda _, p=p: self._open_project_dialog(p)),
                            ft.IconButton(
                                icon=ft.Icons.DELETE_OUTLINE,
                                on_click=lambda _, pid=p.id: self._confirm(
                                    "Eliminare postazione?",
                                    "Verranno eliminati anche tutti i servizi registrati su questo cliente.",
                                    lambda: page.run_task(self._delete_project, pid),
                                ),
                            ),
                        ],
                        tight=True,
                    ),
                )
            )
        if not rows:
            rows.append(ft.Text("Nessun cliente. Aggiungine uno per iniziare a registrare servizi.", size=14))
        return ft.Column(
            [
                ft.Row(
                    [
                        ft.Text("Clienti / Postazioni", size=24, weight=ft.FontWeight.BOLD, expand=True),
                        ft.ElevatedButton("Nuovo cliente", icon=ft.Icons.ADD, on_click=lambda _: self._open_project_dialog(None)),
                    ],
                ),
                ft.Container(height=16),
                ft.Container(content=ft.Column(rows, scroll=ft.ScrollMode.AUTO), expand=True),
            ],
            expand=True,
            horizontal_alignment=ft.CrossAxisAlignment.START,
        )

    def _open_project_dialog(self, project: Project | None) -> None:
        page = self.page
        shifts: list[Shift] = list(project.shifts) if project else []
        shifts_col = ft.Column(spacing=4)
        name_tf = ft.TextField(label="Nome", width=320, value=project.name if project else "")
        rate_tf = ft.TextField(
            label="Tariffa oraria predefinita (€)",
            width=220,
            value=f"{project.default_hourly_rate:.2f}" if project else "0.00",
        )
        color_dd = ft.Dropdown(
            label="Colore",
            width=160,
            value=project.color if project else COLORS[0],
            options=[ft.DropdownOption(key=c, text=c) for c in COLORS],
        )
        shift_name_tf = ft.TextField(label="Turno", width=140)
        shift_start_tf = ft.TextField(label="Inizio", width=90, hint_text="07:00")
        shift_end_tf = ft.TextField(label="Fine", width=90, hint_text="15:00")

        def refresh_shifts():
            shifts_col.controls = [
                ft.Row(
                    [
                        ft.Text(f"{s.name}: {s.start_time} - {s.end_time}", expand=True),
                        ft.IconButton(icon=ft.Icons.CLOSE, on_click=lambda _, sid=s.id: remove_shift(sid)),
                    ],
                )
                for s in shifts
            ]
            page.update()

        def remove_shift(sid: str):
            shifts[:] = [s for s in shifts if s.id != sid]
            refresh_shifts()

        def add_shift(_):
            name = (shift_name_tf.value or "").strip()
            start = (shift_start_tf.value or "").strip()
            end = (shift_end_tf.value or "").strip()
            if not name or not start or not end:
                return
            if parse_time(start) is None or parse_time(end) is None:
                shift_start_tf.error_text = "HH:MM"
                page.update()
                return
            shifts.append(Shift(id=generate_id(), name=name, start_time=start, end_time=end))
            shift_name_tf.value = shift_start_tf.value = shift_end_tf.value = ""
            shift_start_tf.error_text = None
            refresh_shifts()

        def on_cancel(_):
            dialog.open = False
            page.update()

        def on_save(_):
            name = (name_tf.value or "").strip()
            rate = _parse_amount(rate_tf.value)
            if not name:
                name_tf.error_text = "Il nome è obbligatorio"
                page.update()
                return
            if rate is None or rate < 0:
                rate_tf.error_text = "Tariffa non valida"
                page.update()
                return
            saved = Project(
                id=project.id if project else generate_id(),
                name=name,
                color=color_dd.value or COLORS[0],
                default_hourly_rate=rate,
                shifts=list(shifts),
                user_id=project.user_id if project else None,
            )
            dialog.open = False
            page.update()
            page.run_task(self._save_project, saved, project is None)

        dialog = ft.AlertDialog(
            title=ft.Text("Modifica cliente" if project else "Nuovo cliente"),
            content=ft.Column(
                [
                    name_tf,
                    ft.Row([rate_tf, color_dd], spacing=8),
                    ft.Text("Turni predefiniti", weight=ft.FontWeight.W_500),
                    shifts_col,
                    ft.Row(
                        [shift_name_tf, shift_start_tf, shift_end_tf, ft.IconButton(icon=ft.Icons.ADD, on_click=add_shift)],
                        spacing=8,
                    ),
                ],
                tight=True,
                width=520,
            ),
            actions=[
                ft.TextButton("Annulla", on_click=on_cancel),
                ft.ElevatedButton("Salva", on_click=on_save),
            ],
        )
        page.overlay.append(dialog)
        dialog.open = True
        refresh_shifts()

    # --- Billing ---

    def _build_billing_tab(self) -> ft.Control:
        state = self.state
        if not state.projects:
            return ft.Text('Nessun cliente disponibile. Aggiungi clienti nella sezione "Clienti".', size=14)
        if self.billing_project_ids is None:
            self.billing_project_ids = {state.projects[0].id}
        _, months = available_periods(state.entries)
        current_month = date.today().strftime("%Y-%m")
        month_options = sorted(set(months) | {current_month}, reverse=True)
        summary = build_billing_summary(state.entries, self.billing_project_ids, self.billing_months)

        def toggle_project(pid: str):
            self.billing_project_ids ^= {pid}
            self.render()

        def toggle_month(m: str):
            self.billing_months ^= {m}
            self.render()

        def on_export(_):
            html_doc = render_billing_html(summary, state.projects, state.profile)
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            try:
                out_path = _default_export_dir() / f"riepilogo_{stamp}.html"
                out_path.write_text(html_doc, encoding="utf-8")
            except OSError as err:
                logger.exception("Could not write billing document")
                self._snack(f"Impossibile salvare il file: {err}")
                return
            webbrowser.open(out_path.as_uri())
            self._snack(f"Riepilogo salvato in {out_path}")

        header = ft.Row(
            [
                ft.Text("Data", size=12, weight=ft.FontWeight.W_500, width=60),
                ft.Text("Orario", size=12, weight=ft.FontWeight.W_500, width=110),
                ft.Text("Descrizione", size=12, weight=ft.FontWeight.W_500, expand=True),
                ft.Text("Ore", size=12, weight=ft.FontWeight.W_500, width=60),
                ft.Text("Tariffa", size=12, weight=ft.FontWeight.W_500, width=90),
                ft.Text("Spese", size=12, weight=ft.FontWeight.W_500, width=90),
                ft.Text("Totale", size=12, weight=ft.FontWeight.W_500, width=100),
            ],
            spacing=8,
        )
        rows: list[ft.Control] = [header]
        for e in summary.entries:
            end = format_time(e.end_time) if e.end_time is not None else "..."
            rows.append(
                ft.Row(
                    [
                        ft.Text(e.started_at.strftime("%d/%m"), size=12, width=60),
                        ft.Text(f"{format_time(e.start_time)} - {end}", size=12, width=110),
                        ft.Text(e.description or "-", size=12, expand=True),
                        ft.Text(format_duration(e.duration)[:5], size=12, width=60),
                        ft.Text(format_currency(e.hourly_rate or 0), size=12, width=90),
                        ft.Text(format_currency(e.expenses_total) if e.expenses_total > 0 else "-", size=12, width=90),
                        ft.Text(format_currency(calculate_earnings(e)), size=12, width=100),
                    ],
                    spacing=8,
                )
            )
        if not summary.entries:
            rows.append(ft.Text("Nessuna voce presente per questo periodo.", size=13))

        return ft.Column(
            [
                ft.Row(
                    [
                        ft.Text("Riepilogo fatturazione", size=24, weight=ft.FontWeight.BOLD, expand=True),
                        ft.ElevatedButton("Stampa / Esporta", icon=ft.Icons.PRINT, on_click=on_export),
                    ],
                ),
                ft.Text("Clienti", weight=ft.FontWeight.W_500),
                ft.Row(
                    [
                        ft.Checkbox(label=p.name, value=p.id in self.billing_project_ids, on_change=lambda e, pid=p.id: toggle_project(pid))
                        for p in state.projects
                    ],
                    wrap=True,
                ),
                ft.Text("Mesi", weight=ft.FontWeight.W_500),
                ft.Row(
                    [
                        ft.Checkbox(label=_month_label(m), value=m in self.billing_months, on_change=lambda e, m=m: toggle_month(m))
                        for m in month_options
                    ],
                    wrap=True,
                ),
                ft.Divider(),
                ft.Text(f"Periodo: {summary.period_label or '-'}", size=14),
                ft.Container(content=ft.Column(rows, scroll=ft.ScrollMode.AUTO), expand=True),
                ft.Divider(),
                ft.Row(
                    [
                        ft.Text(f"Servizi: {summary.entry_count}"),
                        ft.Text(f"Ore totali: {summary.total_hours:.2f}"),
                        ft.Text(f"Totale: {format_currency(summary.total_earnings)}", weight=ft.FontWeight.BOLD),
                    ],
                    spacing=24,
                    alignment=ft.MainAxisAlignment.END,
                ),
            ],
            expand=True,
            horizontal_alignment=ft.CrossAxisAlignment.START,
        )

    # --- Reports ---

    def _build_reports_tab(self) -> ft.Control:
        report = build_report(self.state.entries, self.state.projects, self.report_window)

        def on_window(e):
            self.report_window = e.control.value or LAST_7_DAYS
            self.render()

        project_rows: list[ft.Control] = []
        for share in report.by_project:
            project_rows.append(
                ft.Row(
                    [
                        ft.Text(share.name, width=200),
                        ft.ProgressBar(
                            value=share.hours / report.total_hours if report.total_hours else 0,
                            color=share.color,
                            width=300,
                        ),
                        ft.Text(f"{share.hours:.1f} h"),
                    ],
                    spacing=12,
                )
            )
        if not project_rows:
            project_rows.append(ft.Text("Nessun dato nel periodo.", size=13))

        max_day = max((d.hours for d in report.by_day), default=0.0)
        day_rows = [
            ft.Row(
                [
                    ft.Text(d.label, width=120, size=12),
                    ft.ProgressBar(value=d.hours / max_day if max_day else 0, width=300),
                    ft.Text(f"{d.hours:.1f} h", size=12),
                ],
                spacing=12,
            )
            for d in report.by_day
        ]
        return ft.Column(
            [
                ft.Text("Report", size=24, weight=ft.FontWeight.BOLD),
                ft.Dropdown(
                    label="Periodo",
                    width=220,
                    value=self.report_window,
                    options=[ft.DropdownOption(key=w, text=WINDOW_LABELS[w]) for w in WINDOWS],
                    on_select=on_window,
                ),
                ft.Row(
                    [
                        ft.Text(f"Ore totali: {report.total_hours:.1f}"),
                        ft.Text(f"Cliente principale: {report.top_project}"),
                        ft.Text(f"Media giornaliera: {report.average_hours_per_day:.1f}h"),
                        ft.Text(f"Servizi: {report.entry_count}"),
                    ],
                    spacing=24,
                    wrap=True,
                ),
                ft.Divider(),
                ft.Text("Ore per cliente", size=16, weight=ft.FontWeight.W_500),
                ft.Column(project_rows),
                ft.Divider(),
                ft.Text("Ore per giorno", size=16, weight=ft.FontWeight.W_500),
                ft.Container(content=ft.Column(day_rows, scroll=ft.ScrollMode.AUTO), expand=True),
            ],
            expand=True,
            horizontal_alignment=ft.CrossAxisAlignment.START,
        )

    # --- Profile ---

    def _build_profile_tab(self) -> ft.Control:
        page = self.page
        profile = self.state.profile
        name_tf = ft.TextField(label="Nome completo", width=320, value=profile.full_name or "")

        async def _save_name(name: str):
            updated = await asyncio.to_thread(self.state.store.update_own_profile, full_name=name)
            if updated is None:
                self._snack("Salvataggio non riuscito.")
                return
            self.state.profile = updated
            self.render()
            self._snack("Profilo aggiornato.")

        trial_lines: list[ft.Control] = []
        if profile.subscription_status == STATUS_TRIAL:
            days_left = profile.trial_days_left()
            trial_lines = [
                ft.Text(f"Prova gratuita: {days_left} giorni rimanenti (fino al {profile.effective_trial_end().strftime('%d/%m/%Y')})"),
                ft.ProgressBar(value=max(0.0, min(1.0, (TRIAL_DAYS - days_left) / TRIAL_DAYS)), width=320),
            ]
        return ft.Column(
            [
                ft.Text("Il mio profilo", size=24, weight=ft.FontWeight.BOLD),
                ft.Container(height=8),
                ft.Text(profile.email, size=16),
                ft.Text(f"Ruolo: {'Amministratore' if profile.is_admin else 'Utente'}"),
                ft.Text(f"Piano: {PLAN_LABELS.get(profile.subscription_status, profile.subscription_status)}"),
                *trial_lines,
                ft.Container(height=16),
                ft.Row(
                    [
                        name_tf,
                        ft.ElevatedButton("Salva", on_click=lambda _: page.run_task(_save_name, name_tf.value or "")),
                    ],
                    spacing=12,
                ),
            ],
            expand=True,
            horizontal_alignment=ft.CrossAxisAlignment.START,
        )

    # --- Admin ---

    async def _load_admin_profiles(self) -> None:
        self.admin_profiles = await asyncio.to_thread(self.state.store.get_all_profiles)
        if self.view == VIEW_ADMIN:
            self.render()

    async def _admin_action(self, action: Callable, *args, **kwargs) -> None:
        try:
            await asyncio.to_thread(action, *args, **kwargs)
        except ValueError as err:
            logger.warning("Admin action failed: %s", err)
            self._snack(str(err))
        await self._load_admin_profiles()

    def _build_admin_tab(self) -> ft.Control:
        page = self.page
        store = self.state.store
        rows: list[ft.Control] = []
        for u in self.admin_profiles:
            is_self = u.id == self.state.profile.id
            status_dd = ft.Dropdown(
                width=160,
                value=u.subscription_status,
                options=[ft.DropdownOption(key=s, text=PLAN_LABELS[s]) for s in SUBSCRIPTION_STATUSES],
                on_select=lambda e, uid=u.id: page.run_task(
                    self._admin_action, store.update_profile_admin, uid, subscription_status=e.control.value
                ),
            )
            if u.is_approved:
                approval = ft.Text("Approvato", color=ft.Colors.GREEN, width=110)
            else:
                approval = ft.ElevatedButton(
                    "Approva",
                    width=110,
                    on_click=lambda _, uid=u.id: page.run_task(self._admin_action, store.update_profile_admin, uid, is_approved=True),
                )
            pro_toggle = ft.OutlinedButton(
                "Togli Pro" if u.subscription_status == STATUS_PRO else "Rendi Pro",
                on_click=lambda _, u=u: page.run_task(
                    self._admin_action,
                    store.update_profile_admin,
                    u.id,
                    subscription_status=STATUS_ACTIVE if u.subscription_status == STATUS_PRO else STATUS_PRO,
                ),
            )
            if is_self:
                delete_btn: ft.Control = ft.Text("(tu)", size=12)
            else:
                delete_btn = ft.IconButton(
                    icon=ft.Icons.DELETE_OUTLINE,
                    on_click=lambda _, uid=u.id: self._confirm(
                        "Eliminare utente?",
                        "Questo rimuoverà il profilo e tutti i suoi dati.",
                        lambda: page.run_task(self._admin_action, store.delete_profile_admin, uid),
                    ),
                )
            rows.append(
                ft.Row(
                    [
                        ft.Text(u.email, width=240),
                        ft.Text("Admin" if u.is_admin else "Utente", width=70),
                        approval,
                        status_dd,
                        pro_toggle,
                        delete_btn,
                    ],
                    spacing=12,
                )
            )
        if not rows:
            rows.append(ft.Text("Nessun utente trovato", size=14))
        return ft.Column(
            [
                ft.Row(
                    [
                        ft.Text("Pannello amministrazione", size=24, weight=ft.FontWeight.BOLD, expand=True),
                        ft.IconButton(icon=ft.Icons.REFRESH, on_click=lambda _: page.run_task(self._load_admin_profiles)),
                    ],
                ),
                ft.Text("Gestisci gli accessi e i piani degli utenti.", size=12, color=ft.Colors.ON_SURFACE_VARIANT),
                ft.Container(height=16),
                ft.Container(content=ft.Column(rows, scroll=ft.ScrollMode.AUTO), expand=True),
            ],
            expand=True,
            horizontal_alignment=ft.CrossAxisAlignment.START,
        )


# --- Pre-app screens ---


def _build_setup_view(on_demo: Callable[[], None], on_local: Callable[[], None]) -> ft.Control:
    """Shown when no backend is configured."""
    return ft.Column(
        [
            ft.Text("Cronosheet", size=28, weight=ft.FontWeight.BOLD),
            ft.Container(height=8),
            ft.Text("L'applicazione è pronta, ma non è collegata a un database.", size=14),
            ft.Text(
                "Imposta DATABASE_URL (PostgreSQL) oppure CRONOSHEET_DB_PATH (file SQLite) in .env o config.env e riavvia.",
                size=12,
                color=ft.Colors.ON_SURFACE_VARIANT,
            ),
            ft.Container(height=24),
            ft.Row(
                [
                    ft.ElevatedButton("Modalità demo", icon=ft.Icons.PLAY_ARROW, on_click=lambda _: on_demo()),
                    ft.OutlinedButton("Archivio locale multiutente", icon=ft.Icons.STORAGE, on_click=lambda _: on_local()),
                ],
                spacing=12,
                alignment=ft.MainAxisAlignment.CENTER,
            ),
        ],
        horizontal_alignment=ft.CrossAxisAlignment.CENTER,
        alignment=ft.MainAxisAlignment.CENTER,
        expand=True,
    )


def _build_auth_view(page: ft.Page, auth: AuthService, backend: str) -> ft.Control:
    """Sign-in / sign-up form. Success is handled by the auth-state listener."""
    mode = ["login"]
    email_field = ft.TextField(label="Email", autofocus=True, width=300)
    password_field = ft.TextField(label="Password", password=True, can_reveal_password=True, width=300)
    error_text = ft.Text("", color=ft.Colors.RED, visible=False)
    title = ft.Text("Accedi", size=18, weight=ft.FontWeight.W_500)

    def _do_submit(_):
        email = (email_field.value or "").strip()
        password = password_field.value or ""
        if not email or not password:
            error_text.value = "Inserisci email e password."
            error_text.visible = True
            page.update()
            return
        error_text.visible = False
        page.update()
        try:
            if mode[0] == "login":
                auth.sign_in(email, password)
            else:
                auth.sign_up(email, password)
        except ValueError as err:
            error_text.value = str(err)
            error_text.visible = True
            page.update()

    def _set_mode(new_mode: str):
        mode[0] = new_mode
        signing_up = new_mode == "signup"
        title.value = "Crea un account" if signing_up else "Accedi"
        login_btn.visible = to_signup_btn.visible = not signing_up
        signup_btn.visible = to_login_btn.visible = signing_up
        error_text.visible = False
        page.update()

    login_btn = ft.ElevatedButton("Accedi", on_click=_do_submit)
    signup_btn = ft.ElevatedButton("Registrati", on_click=_do_submit, visible=False)
    to_signup_btn = ft.TextButton("Non hai un account? Registrati", on_click=lambda _: _set_mode("signup"))
    to_login_btn = ft.TextButton("Hai già un account? Accedi", on_click=lambda _: _set_mode("login"), visible=False)
    password_field.on_submit = _do_submit
    return ft.Column(
        [
            ft.Text("Cronosheet", size=28, weight=ft.FontWeight.BOLD),
            ft.Text(f"Backend: {backend}", size=12, color=ft.Colors.ON_SURFACE_VARIANT),
            ft.Container(height=16),
            title,
            email_field,
            password_field,
            error_text,
            login_btn,
            signup_btn,
            to_signup_btn,
            to_login_btn,
        ],
        horizontal_alignment=ft.CrossAxisAlignment.CENTER,
        alignment=ft.MainAxisAlignment.CENTER,
        expand=True,
    )


def _build_pending_view(profile: UserProfile, on_back: Callable[[], None]) -> ft.Control:
    return ft.Column(
        [
            ft.Icon(ft.Icons.LOCK_CLOCK, size=48),
            ft.Text("Account in attesa di approvazione", size=22, weight=ft.FontWeight.BOLD),
            ft.Text(
                f"L'account {profile.email} è stato creato ed è in attesa di approvazione da parte dell'amministratore.",
                size=14,
            ),
            ft.Text("Stato: in attesa di verifica manuale.", size=12, color=ft.Colors.ON_SURFACE_VARIANT),
            ft.Container(height=16),
            ft.OutlinedButton("Torna al login", on_click=lambda _: on_back()),
        ],
        horizontal_alignment=ft.CrossAxisAlignment.CENTER,
        alignment=ft.MainAxisAlignment.CENTER,
        expand=True,
    )


async def main(page: ft.Page) -> None:
    settings = load_settings()
    setup_logging(settings)
    page.theme_mode = ft.ThemeMode.LIGHT
    page.title = f"Cronosheet {__version__}"
    page.padding = 24

    def show(control: ft.Control) -> None:
        page.controls.clear()
        page.overlay.clear()
        page.add(ft.SafeArea(ft.Container(control, expand=True)))
        page.update()

    async def open_app(store, profile: UserProfile, logout: Callable[[], None]) -> None:
        page.controls.clear()
        page.overlay.clear()
        app = CronosheetApp(page, AppState(store, profile))
        app.setup(logout_callback=logout)
        page.update()
        await app.reload()

    def show_setup() -> None:
        show(_build_setup_view(on_demo=start_demo, on_local=lambda: start_with_store(build_login_store(settings))))

    def start_demo() -> None:
        store = build_demo_store(settings)
        profile = store.demo_profile()
        if profile is None:
            logger.error("Could not create the demo profile")
            return
        page.run_task(open_app, store, profile, show_setup)

    def start_with_store(login_store) -> None:
        auth = AuthService(login_store)

        async def enter(session: Session) -> None:
            store = login_store.for_user(session.user_id)
            profile = await asyncio.to_thread(load_profile, store, session)
            if profile is None:
                logger.error("No profile for %s", session.email)
                auth.sign_out()
                return
            if not profile.is_approved:
                show(_build_pending_view(profile, on_back=auth.sign_out))
                return
            await open_app(store, profile, auth.sign_out)

        def on_auth_change(event: str, session: Session | None) -> None:
            if event == SIGNED_IN and session is not None:
                page.run_task(enter, session)
            else:
                show_login()

        def show_login() -> None:
            show(_build_auth_view(page, auth, login_store.backend_description()))

        auth.on_auth_state_change(on_auth_change)
        show_login()

    if settings.demo:
        start_demo()
    elif not settings.backend_configured:
        show_setup()
    else:
        start_with_store(build_login_store(settings))


def run() -> None:
    ft.run(main)


if __name__ == "__main__":
    run()
