import re
from datetime import date
from typing import List, Optional, Tuple

from studio.services.dates import format_date

# "reste à faire X, Y", "todo: X", "next steps: X y Z"...
TASKS_MARKER = re.compile(
    r"[,;.]?\s*(?:reste à faire|reste a faire|à faire|a faire|reste|prochaines étapes"
    r"|todo|to do|next steps|left to do)\s*:?\s+(?P<tasks>.+)$",
    re.IGNORECASE,
)
TASK_SPLIT = re.compile(r"\s*(?:,|;|\bet\b|\bpuis\b|\band\b|\bthen\b)\s*", re.IGNORECASE)


def extract_tasks(content: str) -> Tuple[str, List[str]]:
    """Separa el texto libre de la lista de tareas pendientes."""
    text = (content or "").strip()
    m = TASKS_MARKER.search(text)
    if not m:
        return text, []
    body = text[: m.start()].strip().rstrip(",;.").strip()
    tasks = [t.strip() for t in TASK_SPLIT.split(m.group("tasks")) if t and t.strip()]
    return body, tasks


def build_note(content: str, today: Optional[date] = None) -> str:
    body, tasks = extract_tasks(content)
    lines = [f"## {format_date(today or date.today())}", "", "### Progress", body, "", "### Next steps"]
    if tasks:
        lines.extend(f"- {t}" for t in tasks)
    else:
        lines.extend(["- ", "- "])
    return "\n".join(lines) + "\n"


def append_note(existing: Optional[str], content: str, today: Optional[date] = None) -> str:
    entry = build_note(content, today)
    if existing and existing.strip():
        return existing.rstrip() + "\n\n" + entry
    return entry
