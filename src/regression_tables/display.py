"""Plain-text display of report tables.

These tables follow the statsmodels summary style: a title band, a
small panel of table facts, the formatted rows, then the footnotes
collected from the column headers.  Level rows are indented under
their variable's label row.

Rendering to document formats is left to other tools; use
:meth:`ReportTable.as_dataframe` to hand the formatted cells over.
"""

from __future__ import annotations

import textwrap

import pandas as pd

from .table import ReportTable

WIDTH = 80


def _truncate(name: str, max_len: int) -> str:
    """Truncate *name* to *max_len*, appending ``'...'`` if needed."""
    if len(name) <= max_len:
        return name
    return name[: max_len - 3] + "..."


def _wrap(text: str, width: int = WIDTH, indent: int = 2) -> str:
    """Word-wrap *text* to *width*, indenting continuation lines only."""
    return textwrap.fill(text, width=width, initial_indent="", subsequent_indent=" " * indent)


def _footnotes(tbl: ReportTable) -> list[str]:
    header = tbl.table_header
    visible = header[~header["hide"].astype(bool)]
    notes: list[str] = []
    for column in ("footnote", "footnote_abbrev"):
        for note in visible[column]:
            if isinstance(note, str) and note and note not in notes:
                notes.append(note)
    return notes


def _cells(tbl: ReportTable) -> pd.DataFrame:
    frame = tbl.as_dataframe(col_labels=True)
    if not frame.empty:
        label_col = frame.columns[0]
        levels = (tbl.table_body["row_type"] != "label").to_numpy()
        frame[label_col] = [
            f"  {text}" if indent else str(text)
            for text, indent in zip(frame[label_col], levels, strict=True)
        ]
    return frame


def format_table(tbl: ReportTable, *, title: str | None = None, width: int = WIDTH) -> str:
    """Return *tbl* as a fixed-width text block.

    The first column takes whatever width the remaining columns leave;
    long labels are truncated with ``...``.
    """
    frame = _cells(tbl)
    title = title or tbl.kind.replace("tbl_", "").replace("_", " ").title() + " Table"
    lines = ["=" * width]
    lines.extend(f"{line:^{width}}" for line in textwrap.wrap(title, width=width - 2))
    lines.append("=" * width)

    facts = [f"{'No. Observations:':<20}{tbl.n if tbl.n is not None else 'N/A':>10}"]
    if tbl.by:
        facts.append(f"{'Grouped by:':<20}{_truncate(str(tbl.by), 30):>10}")
    lines.extend(facts)
    lines.append("-" * width)

    columns = list(frame.columns)
    stat_widths = [
        max([len(str(c))] + [len(str(v)) for v in frame[c]]) for c in columns[1:]
    ]
    first = max(12, width - sum(w + 2 for w in stat_widths))
    head = f"{_truncate(str(columns[0]), first):<{first}}" if columns else ""
    head += "".join(f"  {str(c):>{w}}" for c, w in zip(columns[1:], stat_widths, strict=True))
    lines.append(head)
    lines.append("-" * width)
    for row in frame.itertuples(index=False):
        text = f"{_truncate(str(row[0]), first):<{first}}"
        text += "".join(f"  {str(v):>{w}}" for v, w in zip(row[1:], stat_widths, strict=True))
        lines.append(text.rstrip())

    notes = _footnotes(tbl)
    if notes:
        lines.append("-" * width)
        lines.extend(_wrap(f"  {note}", width=width, indent=4) for note in notes)
    if tbl.diagnostics:
        lines.append("-" * width)
        lines.append("Notes")
        lines.append("-" * width)
        for record in tbl.diagnostics:
            message = f"{record['operation']}: {record['variable']}: {record['message']}"
            lines.append(_wrap(f"  [!] {message}", width=width, indent=6))
    lines.append("=" * width)
    return "\n".join(lines)


def print_table(tbl: ReportTable, *, title: str | None = None, width: int = WIDTH) -> None:
    """Print *tbl* in a formatted ASCII layout similar to statsmodels.

    Args:
        tbl: Any table built by this package.
        title: Title for the output; defaults to the table kind.
        width: Total line width.
    """
    print(format_table(tbl, title=title, width=width))
