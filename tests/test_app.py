"""Tests for the Textual app and the command-line entry point."""

import threading
from unittest.mock import MagicMock, patch

from relocate.app import ConfirmScreen, RelocateApp, build_loader, parse_args, run
from relocate.models import EnvironmentMode
from relocate.render import RenderContext
from relocate.session import QuitNoSelection, QuitWithSelection

CONTEXT = RenderContext(profile="default", region="ap-southeast-1", ssh_keys={"staging": "stg.pem"})


async def _wait_for_load(app: RelocateApp, pilot) -> None:
    await app.workers.wait_for_complete()
    await pilot.pause()
    await pilot.pause()


async def test_load_then_browse_and_confirm(mixed_records) -> None:
    """Test the full browse, confirm and commit flow through real key presses."""
    app = RelocateApp(loader=lambda: list(mixed_records), context=CONTEXT)

    async with app.run_test() as pilot:
        await _wait_for_load(app, pilot)
        assert app.machine.selection.loading is False
        assert len(app.machine.selection.filtered) == 3

        await pilot.press("down")
        await pilot.press("enter")
        await pilot.pause()
        assert isinstance(app.screen, ConfirmScreen)

        await pilot.press("y")
        await pilot.pause()

    assert app.return_value == QuitWithSelection(
        instance=mixed_records[2],
        env_mode=EnvironmentMode.STAGING,
    )


async def test_decline_closes_overlay(mixed_records) -> None:
    """Test that declining pops the overlay and keeps browsing."""
    app = RelocateApp(loader=lambda: list(mixed_records), context=CONTEXT)

    async with app.run_test() as pilot:
        await _wait_for_load(app, pilot)
        await pilot.press("enter")
        await pilot.pause()
        await pilot.press("n")
        await pilot.pause()

        assert not isinstance(app.screen, ConfirmScreen)
        assert app.machine.confirming is False

        await pilot.press("escape")
        await pilot.pause()

    assert app.return_value == QuitNoSelection()


async def test_typing_filters_and_tab_switches_environment(mixed_records) -> None:
    """Test search typing and the environment toggle."""
    app = RelocateApp(loader=lambda: list(mixed_records), context=CONTEXT)

    async with app.run_test() as pilot:
        await _wait_for_load(app, pilot)
        await pilot.press("c", "a")
        assert app.machine.selection.query == "ca"
        assert [record.name for record in app.machine.selection.filtered] == ["commerce-app"]

        await pilot.press("escape", "tab")
        assert app.machine.selection.env_mode is EnvironmentMode.PRODUCTION
        await pilot.press("ctrl+c")

    assert app.return_value == QuitNoSelection()


async def test_load_failure_keeps_app_running() -> None:
    """Test that a failing fetch becomes an error state instead of crashing."""

    def failing_loader():
        raise RuntimeError("no credentials")

    app = RelocateApp(loader=failing_loader, context=CONTEXT)

    async with app.run_test() as pilot:
        await _wait_for_load(app, pilot)
        assert "no credentials" in app.machine.selection.error

        await pilot.press("enter")
        assert app.machine.confirming is False
        await pilot.press("escape")

    assert app.return_value == QuitNoSelection()


async def test_quit_while_loading_does_not_wait_for_fetch() -> None:
    """Test that a hard quit works while the fetch is still in flight."""
    release = threading.Event()

    def slow_loader():
        release.wait(timeout=5)
        return []

    app = RelocateApp(loader=slow_loader, context=CONTEXT)

    async with app.run_test() as pilot:
        await pilot.pause()
        assert app.machine.selection.loading is True
        await pilot.press("ctrl+c")
        release.set()

    assert app.return_value == QuitNoSelection()


def test_parse_args_defaults() -> None:
    """Test that unset flags stay None so config defaults can apply."""
    args = parse_args([])

    assert args.profile is None
    assert args.region is None
    assert args.filter is None
    assert args.user is None
    assert args.demo is False


def test_parse_args_short_flags() -> None:
    """Test the short option aliases."""
    args = parse_args(["-p", "ops", "-r", "eu-west-1", "-f", "Role=web", "-u", "admin"])

    assert (args.profile, args.region, args.filter, args.user) == ("ops", "eu-west-1", "Role=web", "admin")


def _selection(make_record, key_env: EnvironmentMode = EnvironmentMode.STAGING) -> QuitWithSelection:
    return QuitWithSelection(instance=make_record(name="web", ip="203.0.113.9"), env_mode=key_env)


@patch("relocate.app.launch_session")
@patch("relocate.app.RelocateApp.run")
def test_run_launches_ssh_with_resolved_values(mock_app_run, mock_launch, tmp_path, make_record) -> None:
    """Test that a committed selection launches ssh and returns its status."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("ssh_keys:\n  staging: /keys/stg.pem\ndefaults:\n  ssh_user: admin\n", encoding="utf-8")
    mock_app_run.return_value = _selection(make_record)
    mock_launch.return_value = 3

    assert run(["--config", str(config_file), "--demo"]) == 3

    target = mock_launch.call_args.args[0]
    assert (target.host, target.key_path, target.user) == ("203.0.113.9", "/keys/stg.pem", "admin")


@patch("relocate.app.launch_session")
@patch("relocate.app.RelocateApp.run")
def test_run_fails_when_key_missing(mock_app_run, mock_launch, tmp_path, make_record, capsys) -> None:
    """Test that committing without a configured key is a fatal error."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("ssh_keys:\n  staging: stg.pem\n", encoding="utf-8")
    mock_app_run.return_value = _selection(make_record, EnvironmentMode.PRODUCTION)

    assert run(["--config", str(config_file), "--demo"]) == 1

    mock_launch.assert_not_called()
    assert "SSH key not configured for prod" in capsys.readouterr().err


@patch("relocate.app.RelocateApp.run")
def test_run_without_selection_exits_cleanly(mock_app_run: MagicMock, tmp_path) -> None:
    """Test that quitting without a selection returns success."""
    mock_app_run.return_value = QuitNoSelection()

    assert run(["--config", str(tmp_path / "missing.yaml"), "--demo"]) == 0


def test_run_reports_invalid_config(tmp_path, capsys) -> None:
    """Test that a broken config file stops before the UI starts."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- not a mapping\n", encoding="utf-8")

    assert run(["--config", str(config_file)]) == 1
    assert "Error loading config" in capsys.readouterr().err


@patch("relocate.app.RelocateApp")
def test_run_without_profile_uses_default_credential_chain(mock_app_cls: MagicMock, tmp_path) -> None:
    """Test that no profile reaches boto3 as None while the summary still says default."""
    mock_app_cls.return_value.run.return_value = QuitNoSelection()

    assert run(["--config", str(tmp_path / "missing.yaml")]) == 0

    context = mock_app_cls.call_args.kwargs["context"]
    assert context.profile == "default"
    with patch("relocate.app.Ec2InventoryService") as mock_service:
        mock_service.return_value.list_instances.return_value = []
        mock_app_cls.call_args.kwargs["loader"]()
    mock_service.assert_called_once_with(profile=None, region="ap-southeast-1")


@patch("relocate.app.Ec2InventoryService")
def test_build_loader_passes_named_profile(mock_service: MagicMock) -> None:
    """Test that an explicit profile is handed to the inventory service."""
    mock_service.return_value.list_instances.return_value = []
    args = parse_args(["-p", "ops", "-f", "Role=web"])

    assert build_loader(args, "ops", "eu-west-1")() == []
    mock_service.assert_called_once_with(profile="ops", region="eu-west-1")
    mock_service.return_value.list_instances.assert_called_once_with("Role=web")
