"""Text rendering for the instance picker.

Every function here is a pure mapping from state to ``rich.text.Text``; the
Textual app decides where each block is placed on screen.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from rich.text import Text

from .models import EnvironmentMode, InstanceRecord
from .selection import SelectionState, viewport_window
from .session import Confirming, SessionMachine

PRIMARY = "#7DCFB6"
ACCENT = "#FF6B6B"
DIM = "#6B7280"
SUCCESS = "#10B981"
ERROR = "#EF4444"

SPINNER = ("◜", "◠", "◝", "◞")
SEPARATOR = "  •  "
MIN_LIST_ROWS = 5
RESERVED_ROWS = 12
MIN_NAME_WIDTH = 15
NOT_CONFIGURED = "(not configured)"


@dataclass(slots=True, frozen=True)
class RenderContext:
    profile: str
    region: str
    ssh_keys: Mapping[str, str] = field(default_factory=dict)

    def key_name_for(self, mode: EnvironmentMode) -> str | None:
        return self.ssh_keys.get(mode.marker) or None


def list_capacity(height: int) -> int:
    return max(MIN_LIST_ROWS, height - RESERVED_ROWS)


def render_title() -> Text:
    return Text(" relocate ", style=f"bold {PRIMARY}")


def render_summary(profile: str, region: str, count: int) -> Text:
    return Text(
        SEPARATOR.join((f"Profile: {profile}", f"Region: {region}", f"Instances: {count}")),
        style=DIM,
    )


def render_loading(frame: int) -> Text:
    return Text(f"{SPINNER[frame % len(SPINNER)]} Loading instances...", style=PRIMARY)


def render_error(message: str) -> Text:
    return Text(f"✕ {message}", style=f"bold {ERROR}")


def render_list(selection: SelectionState, capacity: int, width: int) -> Text:
    text = Text("Instances", style=f"bold {PRIMARY}")
    filtered = selection.filtered
    if not filtered:
        if selection.query:
            text.append(f"\n  No matches for '{selection.query}'", style=DIM)
        else:
            text.append(f"\n  No instances in {selection.env_mode.label}", style=DIM)
        return text

    max_name = max(MIN_NAME_WIDTH, width // 2 - 8)
    start, end = viewport_window(selection.cursor, len(filtered), capacity)
    for index in range(start, end):
        record = filtered[index]
        text.append("\n")
        text.append("● ", style=SUCCESS if record.is_running else DIM)
        name = _truncate(record.display_name, max_name)
        if index == selection.cursor:
            text.append(f"▸ {name}", style=f"bold reverse {PRIMARY}")
        else:
            text.append(f"  {name}")
    return text


def render_details(record: InstanceRecord | None) -> Text:
    text = Text("Details", style=f"bold {PRIMARY}")
    if record is None:
        return text
    rows = (
        ("Name", record.name),
        ("ID", record.instance_id),
        ("AMI", record.image_id),
        ("IP", record.ip),
        ("Type", record.instance_type),
        ("Zone", record.availability_zone),
        ("State", record.state),
        ("Key", record.key_name),
    )
    for label, value in rows:
        text.append("\n\n")
        text.append(f"{label:<12}", style=DIM)
        text.append(value or "-", style="bold")
    return text


def render_environment_selector(mode: EnvironmentMode) -> Text:
    text = Text()
    for index, option in enumerate(EnvironmentMode, start=1):
        label = f" [{index}] {option.label} "
        if option is mode:
            text.append(label, style=f"bold #111827 on {PRIMARY}")
        else:
            text.append(label, style="#111827 on #9CA3AF")
        text.append(" ")
    return text


def render_status_bar(query: str) -> Text:
    parts = []
    if query:
        parts.append(f"Search: {query}")
    parts.extend(("↑↓ navigate", "Enter connect", "[1/2] env", "type search", "Ctrl+C quit"))
    return Text(SEPARATOR.join(parts), style=DIM)


def render_confirm(record: InstanceRecord, key_name: str | None) -> Text:
    text = Text("Connect to instance?", style=f"bold {ACCENT}")
    text.append("\n\n")
    for label, value in (("Name", record.display_name), ("IP", record.ip), ("Key", key_name or NOT_CONFIGURED)):
        text.append(f"{label:<12}", style=DIM)
        text.append(f"{value or '-'}\n", style="bold")
    text.append("\n[Y] Yes  [N] No  [ESC] Cancel", style=DIM)
    return text


def render(machine: SessionMachine, context: RenderContext) -> Text:
    """Render the whole screen as one block of text."""
    selection = machine.selection
    blocks = [
        render_title(),
        render_summary(context.profile, context.region, len(selection.filtered)),
    ]
    if selection.loading:
        blocks.append(render_loading(machine.spinner_frame))
    elif selection.error is not None:
        blocks.append(render_error(selection.error))
    else:
        blocks.append(render_list(selection, list_capacity(machine.height), machine.width))
        blocks.append(render_details(selection.selected))
        blocks.append(render_environment_selector(selection.env_mode))
        blocks.append(render_status_bar(selection.query))

    state = machine.state
    if isinstance(state, Confirming):
        blocks.append(render_confirm(state.instance, context.key_name_for(selection.env_mode)))
    return Text("\n\n").join(blocks)


def _truncate(value: str, max_length: int) -> str:
    if len(value) <= max_length:
        return value
    return f"{value[: max_length - 3]}..."
