"""Plan review screen for agent-sandbox (--review)."""

import logging
import shlex

from rich.text import Text
from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import Button, DataTable, Label, Static, TabbedContent, TabPane

from bwrap import BubblewrapSerializer, BubblewrapSummarizer, KIND_COLORS
from model.sandbox_config import SandboxConfig

log = logging.getLogger(__name__)

APP_CSS = """
#header-container {
    height: 1;
    padding: 0 1;
    background: $primary;
}
#review-tabs {
    height: 1fr;
}
#mount-table {
    height: 1fr;
}
#command-preview, #explanation, #warnings {
    padding: 1;
}
#footer-buttons {
    height: 3;
    align: right middle;
}
#status-bar {
    width: 1fr;
    padding: 1;
}
"""

MOUNT_COLUMNS = ("#", "Operation", "Host path", "Sandbox path")


class PlanReviewApp(App):
    """Shows the resolved mount plan and asks whether to launch."""

    TITLE = "agent-sandbox"
    ENABLE_COMMAND_PALETTE = False
    CSS = APP_CSS

    BINDINGS = [
        Binding("enter", "execute", "Launch", show=True, priority=True),
        Binding("escape", "cancel", "Cancel", show=True),
    ]

    def __init__(self, config: SandboxConfig, warnings: list[str] | None = None, version: str = "0.0") -> None:
        super().__init__()
        self.config = config
        self.warnings = list(warnings or [])
        self.version = version
        self._execute_command = False

    @property
    def should_launch(self) -> bool:
        return self._execute_command

    def compose(self) -> ComposeResult:
        log.info(f"Reviewing plan with {len(self.config.plan)} operation(s)")

        yield Horizontal(
            Label(Text(f"agent-sandbox {self.version} - {shlex.join(self.config.command)}"), id="header-title"),
            id="header-container",
        )

        with TabbedContent(id="review-tabs"):
            with TabPane("Mounts", id="mounts-tab"):
                yield DataTable(id="mount-table", cursor_type="row", zebra_stripes=True)

            with TabPane("Summary", id="summary-tab"):
                with VerticalScroll():
                    yield Static(BubblewrapSummarizer(self.config).summarize(), id="explanation", markup=False)
                    yield Static(BubblewrapSerializer(self.config).serialize_colored(), id="command-preview")

            with TabPane(f"Warnings ({len(self.warnings)})", id="warnings-tab"):
                with VerticalScroll():
                    text = "\n".join(f"• {w}" for w in self.warnings) or "No warnings"
                    yield Static(text, id="warnings", markup=False)

        yield Horizontal(
            Static(f"Network: {self.config.network.mode.value}", id="status-bar"),
            Button("Launch [Enter]", id="execute-btn", variant="success"),
            Button("Cancel [Esc]", id="cancel-btn", variant="error"),
            id="footer-buttons",
        )

    def on_mount(self) -> None:
        table = self.query_one("#mount-table", DataTable)
        table.add_columns(*MOUNT_COLUMNS)
        for index, op in enumerate(self.config.plan, 1):
            color = KIND_COLORS.get(op.kind, "white")
            table.add_row(
                str(index),
                f"[{color}]{op.kind.value}[/]",
                Text(op.host_path),
                Text(op.sandbox_path),
            )
        table.focus()

    @on(Button.Pressed, "#execute-btn")
    def on_execute_pressed(self, event: Button.Pressed) -> None:
        self.action_execute()

    @on(Button.Pressed, "#cancel-btn")
    def on_cancel_pressed(self, event: Button.Pressed) -> None:
        self.action_cancel()

    def action_execute(self) -> None:
        """Launch the sandbox as shown."""
        self._execute_command = True
        self.exit()

    def action_cancel(self) -> None:
        """Exit without launching."""
        self._execute_command = False
        self.exit()
