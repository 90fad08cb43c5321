import calendar
import re
from datetime import date, timedelta
from typing import Optional

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
EU_DATE = re.compile(r"^(?P<d>\d{1,2})/(?P<m>\d{1,2})/(?P<y>\d{2}|\d{4})$")

RELATIVE_DAYS = {
    "today": 0,
    "aujourd'hui": 0,
    "tomorrow": 1,
    "demain": 1,
    "day after tomorrow": 2,
    "après-demain": 2,
    "apres-demain": 2,
    "next week": 7,
    "semaine prochaine": 7,
    "la semaine prochaine": 7,
}


def add_months(value: date, months: int) -> date:
    """Suma meses de calendario; el día se ajusta al último del mes si no existe (31/01 + 1 mes = 28/02)."""
    index = value.month - 1 + months
    year = value.year + index // 12
    month = index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def shift_date(value: date, days: int = 0, weeks: int = 0, months: int = 0) -> date:
    shifted = value + timedelta(days=days + weeks * 7)
    if months:
        shifted = add_months(shifted, months)
    return shifted


def parse_date_expression(text: Optional[str], today: Optional[date] = None) -> Optional[date]:
    """Convierte "tomorrow", "next week", "2024-03-01" o "01/03/2024" en fecha. None si no se reconoce."""
    if not text:
        return None
    today = today or date.today()
    t = text.strip().lower()

    if t in RELATIVE_DAYS:
        return today + timedelta(days=RELATIVE_DAYS[t])
    if t in ("next month", "le mois prochain", "mois prochain"):
        return add_months(today, 1)

    if ISO_DATE.match(t):
        try:
            return date.fromisoformat(t)
        except ValueError:
            return None

    m = EU_DATE.match(t)
    if m:
        year = int(m.group("y"))
        if year < 100:
            year += 2000
        try:
            return date(year, int(m.group("m")), int(m.group("d")))
        except ValueError:
            return None
    return None


def format_date(value: Optional[date]) -> str:
    if value is None:
        return "none"
    return value.strftime("%d/%m/%Y")
