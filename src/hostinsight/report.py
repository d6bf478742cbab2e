"""Plain-text export of a snapshot's sections."""

from datetime import datetime

from hostinsight.presentation import Section

HEADER = "Host Information Report"
RULE = "=" * 40


def render_report(sections: list[Section], generated_at: datetime | None = None) -> str:
    """
    Render every section as 'label: value' lines, ignoring expansion state.

    Empty sections (e.g. 'Cameras (0)') keep their heading.
    """
    lines = [HEADER]
    if generated_at is not None:
        lines.append(f"Generated {generated_at:%Y-%m-%d %H:%M:%S}")
    lines.append(RULE)
    for section in sections:
        lines.append("")
        lines.append(f"{section.title}:")
        lines.extend(f"{item.label}: {item.value}" for item in section.items)
    return "\n".join(lines) + "\n"
