"""Portable journal exports (markdown and HTML) of saved readings.

Pure functions of already-saved records; nothing here touches a session.
"""

from datetime import datetime
from html import escape
from typing import List, Optional, Sequence

from .catalog import Catalog
from .errors import UnknownRuneError
from .models import ReadingRecord, SelectedRune, utcnow
from .reading import reconcile

FORMATS = {"markdown": "md", "html": "html"}


def export_filename(fmt: str = "markdown", now: Optional[datetime] = None) -> str:
    ext = FORMATS.get(fmt, "md")
    return f"runecast_journal_{(now or utcnow()).strftime('%Y-%m-%d')}.{ext}"


def _when(record: ReadingRecord) -> str:
    return record.created_at.strftime("%Y-%m-%d %H:%M %Z").strip()


def _rune_title(s: SelectedRune, catalog: Optional[Catalog]) -> str:
    symbol = ""
    if catalog is not None:
        try:
            symbol = catalog.rune(s.rune_name).symbol
        except UnknownRuneError:
            pass
    title = f"{s.rune_name} ({s.orientation.value})"
    return f"{symbol} {title}" if symbol else title


def record_to_markdown(record: ReadingRecord, catalog: Optional[Catalog] = None) -> str:
    lines: List[str] = [
        f"## {record.spread.name} - {_when(record)}",
        "",
    ]
    for i, (selected, summary) in enumerate(reconcile(record.runes, record.interpretation)):
        lines.append(f"### {record.spread.position_label(i)}: {_rune_title(selected, catalog)}")
        lines.append("")
        lines.append(summary or "_No interpretation recorded._")
        lines.append("")

    lines += ["### Holistic Interpretation", "", record.interpretation.summary, ""]

    if record.interpretation.questions:
        lines += ["### Reflective Questions", ""]
        lines += [f"- {q}" for q in record.interpretation.questions]
        lines.append("")
    return "\n".join(lines)


def history_to_markdown(
    records: Sequence[ReadingRecord],
    catalog: Optional[Catalog] = None,
    now: Optional[datetime] = None,
) -> str:
    header = [
        "# Runecast Journal",
        "",
        f"Exported {(now or utcnow()).strftime('%Y-%m-%d')} - {len(records)} reading(s)",
        "",
    ]
    if not records:
        return "\n".join(header + ["Your journal is empty.", ""])
    body = "\n---\n\n".join(record_to_markdown(r, catalog) for r in records)
    return "\n".join(header) + "\n" + body


def _record_html(record: ReadingRecord, catalog: Optional[Catalog]) -> str:
    parts: List[str] = [
        "<article class=\"reading\">",
        f"<h2>{escape(record.spread.name)} <small>{escape(_when(record))}</small></h2>",
    ]
    for i, (selected, summary) in enumerate(reconcile(record.runes, record.interpretation)):
        parts.append("<section class=\"rune\">")
        parts.append(
            f"<h3>{escape(record.spread.position_label(i))}: {escape(_rune_title(selected, catalog))}</h3>"
        )
        parts.append(f"<p>{escape(summary) if summary else '<em>No interpretation recorded.</em>'}</p>")
        parts.append("</section>")

    parts.append("<h3>Holistic Interpretation</h3>")
    parts.append(f"<p>{escape(record.interpretation.summary)}</p>")
    if record.interpretation.questions:
        parts.append("<h3>Reflective Questions</h3>")
        parts.append("<ul>")
        parts += [f"<li>{escape(q)}</li>" for q in record.interpretation.questions]
        parts.append("</ul>")
    parts.append("</article>")
    return "\n".join(parts)


def record_to_html(record: ReadingRecord, catalog: Optional[Catalog] = None) -> str:
    return _document(f"{record.spread.name} Reading", [_record_html(record, catalog)])


def history_to_html(
    records: Sequence[ReadingRecord],
    catalog: Optional[Catalog] = None,
    now: Optional[datetime] = None,
) -> str:
    intro = (
        f"<p>Exported {(now or utcnow()).strftime('%Y-%m-%d')} - {len(records)} reading(s)</p>"
    )
    body = [intro] + ([_record_html(r, catalog) for r in records] or ["<p>Your journal is empty.</p>"])
    return _document("Runecast Journal", body)


def _document(title: str, body: Sequence[str]) -> str:
    return "\n".join(
        [
            "<!DOCTYPE html>",
            "<html lang=\"en\">",
            "<head>",
            "<meta charset=\"utf-8\">",
            f"<title>{escape(title)}</title>",
            "</head>",
            "<body>",
            f"<h1>{escape(title)}</h1>",
            *body,
            "</body>",
            "</html>",
            "",
        ]
    )
