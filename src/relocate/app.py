from __future__ import annotations

import argparse
import logging
import subprocess
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import cast

from textual import events, on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.screen import ModalScreen, Screen
from textual.timer import Timer
from textual.widgets import Static
from textual.worker import Worker, WorkerState

from . import __version__
from .aws_api import DEFAULT_PROFILE, Ec2InventoryService, build_demo_instances
from .config import AppConfig, ConfigError, KeyNotConfiguredError, load_config
from .models import InstanceRecord
from .render import (
    RenderContext,
    list_capacity,
    render_confirm,
    render_details,
    render_environment_selector,
    render_error,
    render_list,
    render_loading,
    render_status_bar,
    render_summary,
    render_title,
)
from .session import (
    Confirming,
    LoadComplete,
    QuitWithSelection,
    Resize,
    SessionEvent,
    SessionMachine,
    SessionOutcome,
    Tick,
    is_terminal,
    translate_key,
)
from .ssh import SshTarget, launch_session, resolve_key_path

InstanceLoader = Callable[[], list[InstanceRecord]]

LOAD_WORKER_NAME = "load-instances"
SPINNER_INTERVAL = 0.1

logger = logging.getLogger(__name__)


class ConfirmScreen(ModalScreen[None]):
    """Overlay shown while a connection is awaiting yes/no.

    The screen decides nothing itself: every key goes back to the app and
    through the session machine, which pops this screen when it leaves the
    confirming state.
    """

    def __init__(self, body: object) -> None:
        super().__init__()
        self._body = body

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-modal"):
            yield Static(self._body, id="confirm-body")

    def on_key(self, event: events.Key) -> None:
        app = cast(RelocateApp, self.app)
        if app.handle_key(event.key, event.character):
            event.stop()


class RelocateApp(App[SessionOutcome | None]):
    TITLE = "relocate"
    CSS = """
    #title { background: #1F2937; padding: 0 2; }
    #summary { background: #111827; padding: 0 2; margin-bottom: 1; }
    #banner { margin: 1 2; }
    #main { height: 1fr; }
    #instance-list { width: 1fr; border-left: solid #6B7280; padding-right: 1; }
    #details { width: 1fr; border-top: solid #6B7280; padding-left: 2; }
    #env-selector { border: round #7DCFB6; padding: 0 2; margin-top: 1; width: auto; }
    #status-bar { background: #111827; padding: 0 2; }
    ConfirmScreen { align: center middle; }
    #confirm-modal { width: 60; height: auto; border: round #FF6B6B; padding: 1 2; }
    """
    BINDINGS = [
        Binding("ctrl+c", "session_key('ctrl+c')", "Quit", priority=True),
        Binding("escape", "session_key('escape')", "Clear", show=False, priority=True),
        Binding("enter", "session_key('enter')", "Connect", show=False, priority=True),
        Binding("tab", "session_key('tab')", "Env", show=False, priority=True),
        Binding("up", "session_key('up')", show=False, priority=True),
        Binding("down", "session_key('down')", show=False, priority=True),
        Binding("backspace", "session_key('backspace')", show=False, priority=True),
    ]

    def __init__(
        self,
        *,
        loader: InstanceLoader,
        context: RenderContext,
        machine: SessionMachine | None = None,
    ) -> None:
        super().__init__()
        self.loader = loader
        self.context = context
        self.machine = machine or SessionMachine()
        self._spinner: Timer | None = None
        self._confirm_screen: ConfirmScreen | None = None
        self._main_screen: Screen | None = None

    def compose(self) -> ComposeResult:
        yield Static(render_title(), id="title")
        yield Static(id="summary")
        yield Static(id="banner")
        with Horizontal(id="main"):
            yield Static(id="instance-list")
            yield Static(id="details")
        yield Static(id="env-selector")
        yield Static(id="status-bar")

    def on_mount(self) -> None:
        self._main_screen = self.screen
        self._spinner = self.set_interval(SPINNER_INTERVAL, self._on_spinner_tick)
        logger.info("Loading instances for %s (%s)", self.context.region, self.context.profile)
        self.load_instances()
        self._refresh_view()

    @work(thread=True, exclusive=True, exit_on_error=False, name=LOAD_WORKER_NAME)
    def load_instances(self) -> list[InstanceRecord]:
        return self.loader()

    @on(Worker.StateChanged)
    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        if event.worker.name != LOAD_WORKER_NAME:
            return

        if event.worker.state == WorkerState.SUCCESS:
            self._stop_spinner()
            self.apply_event(LoadComplete(records=tuple(event.worker.result or ())))
            return

        if event.worker.state == WorkerState.ERROR:
            self._stop_spinner()
            self.apply_event(LoadComplete(error=f"AWS error: {event.worker.error}"))

    def on_key(self, event: events.Key) -> None:
        if self.handle_key(event.key, event.character):
            event.stop()

    def on_resize(self, event: events.Resize) -> None:
        self.apply_event(Resize(event.size.width, event.size.height))

    def action_session_key(self, key: str) -> None:
        self.handle_key(key, None)

    def handle_key(self, key: str, character: str | None) -> bool:
        session_event = translate_key(key, character, confirming=self.machine.confirming)
        if session_event is None:
            return False
        self.apply_event(session_event)
        return True

    def apply_event(self, session_event: SessionEvent) -> None:
        if self.machine.finished:
            return
        state = self.machine.handle(session_event)
        self._refresh_view()
        if is_terminal(state):
            self.exit(state)

    def _on_spinner_tick(self) -> None:
        self.apply_event(Tick())

    def _stop_spinner(self) -> None:
        if self._spinner is not None:
            self._spinner.stop()
            self._spinner = None

    def _refresh_view(self) -> None:
        selection = self.machine.selection
        self._update(
            "#summary",
            render_summary(self.context.profile, self.context.region, len(selection.filtered)),
        )

        if selection.loading:
            self._update("#banner", render_loading(self.machine.spinner_frame))
        elif selection.error is not None:
            self._update("#banner", render_error(selection.error))
        self._set_display("#banner", selection.loading or selection.error is not None)

        ready = not selection.loading and selection.error is None
        for selector in ("#main", "#env-selector", "#status-bar"):
            self._set_display(selector, ready)
        if ready:
            capacity = list_capacity(self.machine.height)
            self._update("#instance-list", render_list(selection, capacity, self.machine.width))
            self._update("#details", render_details(selection.selected))
            self._update("#env-selector", render_environment_selector(selection.env_mode))
            self._update("#status-bar", render_status_bar(selection.query))

        self._sync_confirm_screen()

    def _sync_confirm_screen(self) -> None:
        state = self.machine.state
        if isinstance(state, Confirming):
            if self._confirm_screen is None:
                key_name = self.context.key_name_for(self.machine.selection.env_mode)
                self._confirm_screen = ConfirmScreen(render_confirm(state.instance, key_name))
                self.push_screen(self._confirm_screen)
            return

        if self._confirm_screen is not None:
            if self.screen is self._confirm_screen:
                self.pop_screen()
            self._confirm_screen = None

    def _update(self, selector: str, content: object) -> None:
        if self._main_screen is None:
            return
        try:
            self._main_screen.query_one(selector, Static).update(content)
        except NoMatches:
            return

    def _set_display(self, selector: str, visible: bool) -> None:
        if self._main_screen is None:
            return
        try:
            self._main_screen.query_one(selector).display = visible
        except NoMatches:
            return


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="relocate", description="Quick SSH to AWS instances")
    parser.add_argument("-p", "--profile", default=None, help="AWS profile name")
    parser.add_argument("-r", "--region", default=None, help="AWS region name")
    parser.add_argument(
        "-f",
        "--filter",
        default=None,
        metavar="KEY=VALUE",
        help="Only list instances with this tag (e.g. Environment=staging)",
    )
    parser.add_argument("-u", "--user", default=None, help="Remote SSH user")
    parser.add_argument(
        "--config",
        default=None,
        help="Config file (defaults to ~/.relocate/config.yaml or config.json)",
    )
    parser.add_argument("--demo", action="store_true", help="Browse built-in demo instances without AWS")
    parser.add_argument("--log-file", default=None, help="Write logs to this file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Log level used with --log-file",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def configure_logging(log_file: str | None, level: str = "INFO") -> None:
    package_logger = logging.getLogger("relocate")
    if not log_file:
        package_logger.addHandler(logging.NullHandler())
        return

    handler = logging.FileHandler(Path(log_file).expanduser(), encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(level)


def build_loader(args: argparse.Namespace, profile: str | None, region: str) -> InstanceLoader:
    if args.demo:
        return lambda: build_demo_instances(region=region)
    return lambda: Ec2InventoryService(profile=profile, region=region).list_instances(args.filter)


def connect(outcome: QuitWithSelection, config: AppConfig, user: str) -> int:
    instance = outcome.instance
    try:
        key_name = config.ssh_key_for(outcome.env_mode)
    except KeyNotConfiguredError as error:
        print(f"Error: {error}", file=sys.stderr)
        return 1
    if not instance.ip:
        print(f"Error: {instance.display_name} has no IP address", file=sys.stderr)
        return 1

    target = SshTarget(host=instance.ip, key_path=resolve_key_path(key_name), user=user)
    print(f"Connecting to {instance.display_name} ({instance.ip})...\n")
    try:
        return launch_session(target)
    except OSError as error:
        logger.error("Failed to start ssh: %s", error)
        print(f"Error: failed to start ssh: {error}", file=sys.stderr)
        return 1


def run(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_file, args.log_level)
    try:
        config = load_config(args.config)
    except ConfigError as error:
        print(f"Error loading config: {error}", file=sys.stderr)
        return 1

    profile = config.resolve_profile(args.profile)
    region = config.resolve_region(args.region)
    app = RelocateApp(
        loader=build_loader(args, profile, region),
        context=RenderContext(profile=profile or DEFAULT_PROFILE, region=region, ssh_keys=config.ssh_keys),
    )
    outcome: SessionOutcome | None = None
    try:
        outcome = app.run()
    except KeyboardInterrupt:
        pass
    finally:
        _restore_terminal_state()

    if not isinstance(outcome, QuitWithSelection):
        return 0
    return connect(outcome, config, config.resolve_user(args.user))


def main(argv: Sequence[str] | None = None) -> None:
    sys.exit(run(argv))


def _restore_terminal_state() -> None:
    if not sys.stdout.isatty():
        return
    try:
        sys.stdout.write("\x1b[?1000l\x1b[?1002l\x1b[?1003l\x1b[?1006l\x1b[?1015l\x1b[?25h")
        sys.stdout.flush()
    except OSError:
        pass
    if not sys.stdin.isatty():
        return
    try:
        subprocess.run(
            ["stty", "sane"],
            check=False,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError:
        pass


if __name__ == "__main__":
    main()
