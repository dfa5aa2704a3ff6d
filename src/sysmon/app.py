"""sysmon - full-screen watch view built on Textual."""

from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import VerticalScroll
from textual.widgets import Footer, Static

from sysmon.config import MonitorConfig
from sysmon.monitor import RefreshLoop, Sampler


class ReportView(Static):
    """Plain-text report; markup is off because commands may contain brackets."""

    DEFAULT_CSS = """
    ReportView {
        height: auto;
        padding: 0 1;
    }
    """


class SysmonApp(App):
    """Refreshing full-screen view of the same report the CLI prints."""

    TITLE = "sysmon"
    SUB_TITLE = "System Resource Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #report-scroll {
        height: 1fr;
        border: solid $primary;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(self, config: MonitorConfig, sampler: Sampler | None = None) -> None:
        """Initialize the SysmonApp."""
        super().__init__()
        self._config = config
        self._frames: Queue[list[str]] = Queue()
        self._loop = RefreshLoop(
            config,
            sampler if sampler is not None else Sampler.from_config(config),
            on_frame=self._frames.put,
            show_banner=False,
        )
        self._last_frame: list[str] = []
        self.sub_title = f"Refreshing every {config.watch_interval}s"

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield VerticalScroll(
            ReportView("Sampling...", id="report", markup=False),
            id="report-scroll",
        )
        yield Footer()

    def on_mount(self) -> None:
        """Start the refresh loop when the app is mounted."""
        self._loop.start()
        # Set up a timer to poll the queue for frames
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Show the most recent frame, dropping any older ones."""
        frame = None
        while True:
            try:
                frame = self._frames.get_nowait()
            except Empty:
                break

        if frame is not None:
            self._last_frame = frame
            self.query_one("#report", ReportView).update("\n".join(frame))

    def stop_monitor(self) -> None:
        """Cancel the refresh loop and wait for its thread."""
        self._loop.stop()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self.stop_monitor()
        self.exit()


def run_tui(config: MonitorConfig) -> int:
    """Run the full-screen view until the user quits."""
    app = SysmonApp(config)
    try:
        app.run()
    finally:
        app.stop_monitor()
    return 0
