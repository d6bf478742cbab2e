"""hostinsight - Textual application and command-line entry point."""

import argparse
import logging
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from queue import Empty, Queue

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.containers import VerticalScroll
from textual.logging import TextualHandler
from textual.widgets import Collapsible, Footer, Header, Static

from hostinsight.aggregator import SnapshotAggregator
from hostinsight.config import InsightConfig
from hostinsight.presentation import Section
from hostinsight.presenter import Error, Presenter, Success, ViewState
from hostinsight.report import render_report

logger = logging.getLogger(__name__)


class StatusLine(Static):
    """One-line summary of the current view state."""

    DEFAULT_CSS = """
    StatusLine {
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    """

    def show_state(self, state: ViewState) -> None:
        if isinstance(state, Success):
            self.update(f"Collected at {state.snapshot.collected_at:%H:%M:%S}  (r: refresh)")
        elif isinstance(state, Error):
            self.update(f"[red]Error:[/red] {escape(state.message)}  (r: retry)")
        else:
            self.update("Collecting host information...")


class SectionBody(Static):
    """Label/value lines of one section."""

    @staticmethod
    def render_items(section: Section) -> str:
        if not section.items:
            return "[dim]Nothing found[/dim]"
        width = max(len(item.label) for item in section.items)
        return "\n".join(
            f"[b]{escape(item.label)}[/b]{' ' * (width - len(item.label))}  {escape(item.value)}"
            for item in section.items
        )


class SectionList(VerticalScroll):
    """Container of one Collapsible per section."""

    DEFAULT_CSS = """
    SectionList {
        height: 1fr;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize SectionList."""
        super().__init__(*args, **kwargs)
        self._titles: list[str] = []

    async def update_sections(self, sections: list[Section]) -> None:
        """
        Show a new section list.

        Widgets are updated in place when the titles are unchanged; otherwise
        the list is rebuilt.
        """
        titles = [section.title for section in sections]
        if titles != self._titles:
            await self.remove_children()
            await self.mount_all(
                Collapsible(
                    SectionBody(SectionBody.render_items(section)),
                    title=section.title,
                    collapsed=not section.expanded,
                    id=f"section-{section.key}",
                )
                for section in sections
            )
            self._titles = titles
            return

        for section in sections:
            collapsible = self.query_one(f"#section-{section.key}", Collapsible)
            collapsible.query_one(SectionBody).update(SectionBody.render_items(section))
            collapsible.collapsed = not section.expanded


class HostInsightApp(App):
    """Main hostinsight application."""

    TITLE = "hostinsight"
    SUB_TITLE = "Host Information"

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("e", "export", "Export"),
    ]

    def __init__(
        self,
        presenter: Presenter | None = None,
        config: InsightConfig | None = None,
        export_dir: Path | None = None,
    ) -> None:
        """
        Initialize the HostInsightApp.

        Args:
            presenter: State machine to drive. Defaults to one wired to this host.
            config: Used only when no presenter is given.
            export_dir: Directory for exported reports. Defaults to the cwd.
        """
        super().__init__()
        self._presenter = presenter or Presenter(SnapshotAggregator.for_host(config))
        self._export_dir = export_dir or Path.cwd()
        self._update_queue: Queue[tuple[ViewState, list[Section]]] = Queue()
        self._unsubscribe = self._presenter.subscribe(
            lambda state, sections: self._update_queue.put((state, sections))
        )

    @property
    def presenter(self) -> Presenter:
        return self._presenter

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Header()
        yield StatusLine(id="status")
        yield SectionList(id="sections")
        yield Footer()

    def on_mount(self) -> None:
        """Start the first collection when the app is mounted."""
        self.set_interval(0.2, self._check_for_updates)
        self._collect()

    def _collect(self) -> None:
        # Probes block; run them off the UI thread
        self.run_worker(self._presenter.refresh, thread=True, group="collect")

    async def _check_for_updates(self) -> None:
        """Drain queued state changes and render only the latest."""
        latest = None
        while True:
            try:
                latest = self._update_queue.get_nowait()
            except Empty:
                break

        if latest is not None:
            await self._update_ui(*latest)

    async def _update_ui(self, state: ViewState, sections: list[Section]) -> None:
        self.query_one("#status", StatusLine).show_state(state)
        if isinstance(state, Success):
            await self.query_one("#sections", SectionList).update_sections(sections)

    def _sync_toggle(self, collapsible: Collapsible) -> None:
        """Forward a user expand/collapse to the presenter if it changes state."""
        key = (collapsible.id or "").removeprefix("section-")
        for section in self._presenter.sections:
            if section.key == key and section.expanded == collapsible.collapsed:
                self._presenter.toggle_section(section.title)
                break

    def on_collapsible_expanded(self, event: Collapsible.Expanded) -> None:
        self._sync_toggle(event.collapsible)

    def on_collapsible_collapsed(self, event: Collapsible.Collapsed) -> None:
        self._sync_toggle(event.collapsible)

    def action_refresh(self) -> None:
        """Handle refresh action - re-run every probe."""
        self._collect()

    def action_export(self) -> None:
        """Write the current sections to a text report."""
        sections = self._presenter.sections
        if not sections:
            self.notify("Nothing to export yet", severity="warning")
            return
        path = self._export_dir / f"hostinsight-{datetime.now():%Y%m%d-%H%M%S}.txt"
        try:
            path.write_text(render_report(sections, datetime.now()))
        except OSError as exc:
            logger.warning("Export to %s failed: %s", path, exc)
            self.notify(f"Export failed: {exc}", severity="error")
            return
        self.notify(f"Saved {path}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._unsubscribe()
        self.exit()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="hostinsight", description="Show host information.")
    parser.add_argument("--report", action="store_true", help="print a text report and exit")
    parser.add_argument("--timeout", type=float, help="seconds to wait for all probes")
    parser.add_argument("--interface", help="wireless interface for the MAC address lookup")
    parser.add_argument("--log-level", help="logging level, e.g. DEBUG")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> InsightConfig:
    """Environment settings, overridden by command-line flags."""
    config = InsightConfig.from_env()
    if args.timeout is not None:
        config = config.with_timeout(args.timeout)
    overrides: dict[str, str] = {}
    if args.interface:
        overrides["wireless_interface"] = args.interface
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    return replace(config, **overrides)


def main(argv: list[str] | None = None) -> None:
    """Entry point for hostinsight."""
    args = parse_args(argv)
    config = build_config(args)
    level = getattr(logging, config.log_level, logging.WARNING)

    if args.report:
        logging.basicConfig(level=level, stream=sys.stderr)
        presenter = Presenter(SnapshotAggregator.for_host(config))
        state = presenter.load()
        if isinstance(state, Error):
            print(f"error: {state.message}", file=sys.stderr)
            sys.exit(1)
        sys.stdout.write(render_report(presenter.sections, datetime.now()))
        return

    logging.basicConfig(level=level, handlers=[TextualHandler()])
    app = HostInsightApp(config=config)
    app.run()


if __name__ == "__main__":
    main()
