"""
Year / month / project filter shared by the timesheet, billing and reports views.
An empty project selection shows nothing; an empty month selection falls back to the whole year.
"""
from dataclasses import dataclass, field, replace
from datetime import date

from entities import Project, TimeEntry


@dataclass(frozen=True)
class EntryFilter:
    year: str
    months: frozenset[str] = field(default_factory=frozenset)
    project_ids: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def default(cls, projects: list[Project], today: date | None = None) -> "EntryFilter":
        """Select every project and the whole current year."""
        today = today or date.today()
        return cls(
            year=f"{today.year:04d}",
            months=frozenset(),
            project_ids=frozenset(p.id for p in projects),
        )

    def matches(self, entry: TimeEntry) -> bool:
        if entry.project_id not in self.project_ids:
            return False
        if self.months:
            return entry.month_key in self.months
        return entry.year_key == self.year

    def apply(self, entries: list[TimeEntry]) -> list[TimeEntry]:
        return [e for e in entries if self.matches(e)]

    def with_year(self, year: str) -> "EntryFilter":
        """Switch year; months of another year are dropped."""
        return replace(self, year=year, months=frozenset(m for m in self.months if m.startswith(f"{year}-")))

    def toggle_month(self, month: str) -> "EntryFilter":
        return replace(self, months=self.months ^ {month})

    def toggle_project(self, project_id: str) -> "EntryFilter":
        return replace(self, project_ids=self.project_ids ^ {project_id})

    def select_all_projects(self, projects: list[Project]) -> "EntryFilter":
        return replace(self, project_ids=frozenset(p.id for p in projects))

    def clear_projects(self) -> "EntryFilter":
        return replace(self, project_ids=frozenset())


def available_periods(entries: list[TimeEntry], today: date | None = None) -> tuple[list[str], list[str]]:
    """Distinct 'YYYY' and 'YYYY-MM' keys found in entries, newest first.
    The current year is always offered, even with no entries."""
    today = today or date.today()
    years = {f"{today.year:04d}"}
    months: set[str] = set()
    for entry in entries:
        month = entry.month_key
        months.add(month)
        years.add(month[:4])
    return sorted(years, reverse=True), sorted(months, reverse=True)


def months_of_year(months: list[str], year: str) -> list[str]:
    return [m for m in months if m.startswith(f"{year}-")]
