"""Panel content for the presentation layer, as Rich markup strings."""

from rich.markup import escape

from plugdeck.dashboard.state import DashboardState, Panel

KEY_HELP = (
    "↑/↓: Navigate | Tab: Panel | Space: Select | Enter: Run | d: Fetch/Remove | "
    "c: Clear | r: Reload | s: Stop | q: Quit"
)

_ABSENT = "dodger_blue2"
_PRESENT = "green"
_TO_REMOVE = "red"


def _truncate(text: str, width: int) -> str:
    if width <= 3 or len(text) <= width:
        return text
    return text[: width - 3] + "..."


def render_catalog(state: DashboardState) -> str:
    out: list[str] = []
    catalog = state.catalog

    if state.loading:
        out.append(f"Loading plugins {state.spinner}")
        return "\n".join(out)
    if state.load_error:
        out.append(f"[red]✗ {escape(state.load_error)}[/red]")
        out.append("Press r to retry.")
        return "\n".join(out)

    summary = f"{catalog.entry_count} plugin(s) available"
    if state.failed_sources:
        loaded = state.source_count - state.failed_sources
        summary += f" [yellow](loaded {loaded} of {state.source_count} source(s))[/yellow]"
    out.append(summary)
    out.append("")

    running = state.host.plugin_name
    focused = state.focus is Panel.CATALOG
    for index, line in enumerate(catalog.lines):
        repo = catalog.repositories[line.repo_index]
        if line.is_header:
            marker = "▸" if repo.collapsed else "▾"
            text = f"[b]{marker} {escape(repo.name)}[/b] ({len(repo.entries)})"
        else:
            entry = repo.entries[line.entry_index]
            present = entry.name in state.inventory
            selected = line.key in state.selection
            if selected and present:
                color = _TO_REMOVE
            elif present or selected:
                color = _PRESENT
            else:
                color = _ABSENT
            prefix = "▶ " if entry.name == running else "  "
            mark = "[x]" if selected else "[ ]"
            suffix = "/" if not entry.is_file else ""
            text = f"[{color}]{prefix}{escape(mark)} {escape(entry.name)}{suffix}[/{color}]"
        if focused and index == state.cursor:
            text = f"[reverse]{text}[/reverse]"
        out.append(text)
    return "\n".join(out)


def render_log(state: DashboardState, rows: int | None = None, width: int | None = None) -> str:
    if not state.logs:
        return "No activity yet..."
    newest_first = list(reversed(state.logs))[state.log_offset :]
    if rows is not None:
        newest_first = newest_first[: max(1, rows)]
    if width is not None:
        newest_first = [_truncate(line, width) for line in newest_first]
    return "\n".join(escape(line) for line in newest_first)


def render_embedded(state: DashboardState) -> str:
    host = state.host
    if host.active:
        return escape(host.view())
    if host.loading:
        return f"Starting {escape(host.plugin_name or '')} {state.spinner}"
    return (
        "Select a fetched plugin and press Enter\n"
        "to run it here.\n\n"
        "Keys:\n"
        "• Enter: Run\n"
        "• s: Stop the running plugin\n"
        "• d: Fetch/Remove selected"
    )


def embedded_title(state: DashboardState) -> str:
    name = state.host.plugin_name
    return f"Plugin: {name}" if name else "Plugin"


def render_status(state: DashboardState) -> str:
    if state.loading:
        message = f"Fetching catalogs {state.spinner}"
    elif state.processing:
        message = f"{state.status} {state.spinner}"
    elif state.status:
        message = state.status
    elif state.selection:
        message = f"{len(state.selection)} plugin(s) selected"
    elif state.host.active:
        message = f"▶ {state.host.plugin_name} running"
    else:
        message = ""
    if message:
        return f"{escape(message)} | {KEY_HELP}"
    return KEY_HELP
