from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from .models import EnvironmentMode, InstanceRecord
from .selection import SelectionState

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 80
DEFAULT_HEIGHT = 24
SPINNER_FRAMES = 4


@dataclass(slots=True, frozen=True)
class MoveCursor:
    delta: int


@dataclass(slots=True, frozen=True)
class SelectEnvironment:
    mode: EnvironmentMode


@dataclass(slots=True, frozen=True)
class ToggleEnvironment:
    pass


@dataclass(slots=True, frozen=True)
class AppendChar:
    char: str


@dataclass(slots=True, frozen=True)
class Backspace:
    pass


@dataclass(slots=True, frozen=True)
class Clear:
    pass


@dataclass(slots=True, frozen=True)
class Quit:
    pass


@dataclass(slots=True, frozen=True)
class RequestConfirm:
    pass


@dataclass(slots=True, frozen=True)
class Affirm:
    pass


@dataclass(slots=True, frozen=True)
class Decline:
    pass


@dataclass(slots=True, frozen=True)
class LoadComplete:
    records: Sequence[InstanceRecord] = field(default_factory=tuple)
    error: str | None = None


@dataclass(slots=True, frozen=True)
class Tick:
    pass


@dataclass(slots=True, frozen=True)
class Resize:
    width: int
    height: int


SessionEvent = (
    MoveCursor
    | SelectEnvironment
    | ToggleEnvironment
    | AppendChar
    | Backspace
    | Clear
    | Quit
    | RequestConfirm
    | Affirm
    | Decline
    | LoadComplete
    | Tick
    | Resize
)


@dataclass(slots=True, frozen=True)
class Browsing:
    pass


@dataclass(slots=True, frozen=True)
class Confirming:
    index: int
    instance: InstanceRecord


@dataclass(slots=True, frozen=True)
class QuitNoSelection:
    pass


@dataclass(slots=True, frozen=True)
class QuitWithSelection:
    instance: InstanceRecord
    env_mode: EnvironmentMode


SessionState = Browsing | Confirming | QuitNoSelection | QuitWithSelection
SessionOutcome = QuitNoSelection | QuitWithSelection


def is_terminal(state: SessionState) -> bool:
    return isinstance(state, (QuitNoSelection, QuitWithSelection))


class SessionMachine:
    """Browse/confirm controller driven one event at a time.

    ``handle`` applies an event completely, including any recomputation of the
    filtered list, and returns the resulting state. Once a terminal state is
    reached every further event is ignored.
    """

    def __init__(self, selection: SelectionState | None = None) -> None:
        self.selection = selection or SelectionState()
        self.state: SessionState = Browsing()
        self.width = DEFAULT_WIDTH
        self.height = DEFAULT_HEIGHT
        self.spinner_frame = 0

    @property
    def confirming(self) -> bool:
        return isinstance(self.state, Confirming)

    @property
    def finished(self) -> bool:
        return is_terminal(self.state)

    def handle(self, event: SessionEvent) -> SessionState:
        if self.finished:
            return self.state

        match event:
            case Quit():
                self.state = QuitNoSelection()
            case LoadComplete(records=records, error=error):
                if error is not None:
                    self.selection.fail(error)
                else:
                    self.selection.load(records)
            case Tick():
                if self.selection.loading:
                    self.spinner_frame = (self.spinner_frame + 1) % SPINNER_FRAMES
            case Resize(width=width, height=height):
                self.width = width
                self.height = height
            case _:
                if isinstance(self.state, Confirming):
                    self._handle_confirming(self.state, event)
                else:
                    self._handle_browsing(event)
        return self.state

    def _handle_confirming(self, state: Confirming, event: SessionEvent) -> None:
        match event:
            case Affirm():
                logger.info("Confirmed connection to %s", state.instance.instance_id)
                self.state = QuitWithSelection(state.instance, self.selection.env_mode)
            case Decline() | Clear():
                self.state = Browsing()

    def _handle_browsing(self, event: SessionEvent) -> None:
        selection = self.selection
        if selection.error is not None:
            if isinstance(event, Clear):
                self.state = QuitNoSelection()
            return

        match event:
            case MoveCursor(delta=delta):
                selection.move_cursor(delta)
            case SelectEnvironment(mode=mode):
                selection.set_environment(mode)
            case ToggleEnvironment():
                selection.set_environment(selection.env_mode.toggled())
            case AppendChar(char=char):
                selection.append_char(char)
            case Backspace():
                selection.backspace()
            case Clear():
                if selection.query:
                    selection.set_query("")
                else:
                    self.state = QuitNoSelection()
            case RequestConfirm():
                instance = selection.selected
                if selection.loading or instance is None:
                    return
                self.state = Confirming(selection.cursor, instance)


def translate_key(key: str, character: str | None, *, confirming: bool) -> SessionEvent | None:
    if key == "ctrl+c":
        return Quit()

    if confirming:
        if character in ("y", "Y", " "):
            return Affirm()
        if character in ("n", "N"):
            return Decline()
        if key == "escape":
            return Clear()
        return None

    match key:
        case "escape":
            return Clear()
        case "enter":
            return RequestConfirm()
        case "up" | "k":
            return MoveCursor(-1)
        case "down" | "j":
            return MoveCursor(1)
        case "tab":
            return ToggleEnvironment()
        case "1":
            return SelectEnvironment(EnvironmentMode.STAGING)
        case "2":
            return SelectEnvironment(EnvironmentMode.PRODUCTION)
        case "backspace":
            return Backspace()
        case "space":
            return None

    if character and character.isprintable():
        return AppendChar(character)
    return None
