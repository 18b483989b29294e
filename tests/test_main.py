import asyncio
import sys
from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from bantrap import main
from bantrap.bot.cogs.events_listener import EventsListenerCog
from bantrap.bot.cogs.message_listener import MessageListenerCog
from bantrap.bot.cogs.trap_settings_cmds import TrapSettingsCog


class FakeBot:
    def __init__(self, *args, **kwargs) -> None:
        self.kwargs = kwargs
        self.cogs = []
        self._closed = False
        self.close_calls = 0
        self.guilds = []

    def add_cog(self, cog) -> None:
        self.cogs.append(cog)

    def is_closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        self._closed = True
        self.close_calls += 1


@pytest.fixture
def isolated_main(monkeypatch, tmp_path):
    """Run main() against a temporary home without touching the real process state."""
    monkeypatch.setenv("BANTRAP_HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(main.sys, "excepthook", sys.excepthook)
    return tmp_path


def test_build_intents_enable_message_content():
    intents = main.build_intents()
    assert intents.guilds
    assert intents.members
    assert intents.messages
    assert intents.message_content


def test_resolve_base_dir_uses_env(monkeypatch, tmp_path):
    monkeypatch.setenv("BANTRAP_HOME", str(tmp_path))
    assert main.resolve_base_dir() == tmp_path.resolve()


def test_resolve_base_dir_handles_frozen(monkeypatch, tmp_path):
    monkeypatch.delenv("BANTRAP_HOME", raising=False)
    monkeypatch.setattr(main.sys, "frozen", True, raising=False)
    monkeypatch.setattr(main.sys, "argv", [str(tmp_path / "bantrap.exe")], raising=False)
    assert main.resolve_base_dir() == tmp_path.resolve()


def test_load_environment_reads_dotenv(monkeypatch, tmp_path):
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)
    (tmp_path / ".env").write_text("DISCORD_BOT_TOKEN=abc123\n", encoding="utf-8")

    assert main.load_environment(tmp_path) == "abc123"
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)


def test_load_environment_exits_without_token(monkeypatch, tmp_path):
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)

    with pytest.raises(SystemExit) as excinfo:
        main.load_environment(tmp_path)

    assert excinfo.value.code == 1


@pytest.mark.asyncio
async def test_create_bot_registers_all_cogs(monkeypatch, store, tmp_path):
    monkeypatch.setattr(main.discord, "Bot", FakeBot)
    config = main.AppConfig(tmp_path / "absent.yml")

    bot = main.create_bot(store, config)

    assert {type(cog) for cog in bot.cogs} == {EventsListenerCog, MessageListenerCog, TrapSettingsCog}
    trap_cog = next(cog for cog in bot.cogs if isinstance(cog, TrapSettingsCog))
    assert trap_cog.delete_message_seconds == 604800
    assert bot.kwargs["intents"].message_content


@pytest.mark.asyncio
async def test_async_main_runs_and_shuts_down(monkeypatch, isolated_main):
    bot = FakeBot()
    monkeypatch.setattr(main, "load_environment", lambda base_dir: "token")
    monkeypatch.setattr(main, "create_bot", lambda store, config: bot)
    start_bot = AsyncMock()
    monkeypatch.setattr(main, "start_bot", start_bot)

    @asynccontextmanager
    async def fake_console_session(control):
        yield control

    monkeypatch.setattr(main, "console_session", fake_console_session)

    exit_code = await main.async_main(isolated_main)

    assert exit_code == 0
    start_bot.assert_awaited_once_with(bot, "token")
    assert bot.close_calls == 1
    assert (isolated_main / "data" / "bantrap.db").exists()


@pytest.mark.asyncio
async def test_async_main_returns_restart_code(monkeypatch, isolated_main):
    monkeypatch.setattr(main, "load_environment", lambda base_dir: "token")
    monkeypatch.setattr(main, "create_bot", lambda store, config: FakeBot())
    monkeypatch.setattr(main, "start_bot", AsyncMock())

    @asynccontextmanager
    async def restarting_console_session(control):
        control.request_restart()
        yield control

    monkeypatch.setattr(main, "console_session", restarting_console_session)

    assert await main.async_main(isolated_main) == main.RESTART_EXIT_CODE


@pytest.mark.asyncio
async def test_async_main_reports_bot_creation_failure(monkeypatch, isolated_main):
    monkeypatch.setattr(main, "load_environment", lambda base_dir: "token")

    def broken_create_bot(store, config):
        raise RuntimeError("no bot for you")

    monkeypatch.setattr(main, "create_bot", broken_create_bot)

    assert await main.async_main(isolated_main) == 1


@pytest.mark.asyncio
async def test_run_bot_session_reports_runtime_error(monkeypatch, store):
    bot = FakeBot()
    monkeypatch.setattr(main, "start_bot", AsyncMock(side_effect=RuntimeError("gateway died")))

    @asynccontextmanager
    async def fake_console_session(control):
        yield control

    monkeypatch.setattr(main, "console_session", fake_console_session)

    exit_code = await main.run_bot_session(bot, "token", main.ConsoleControl(store), store)

    assert exit_code == 1
    assert bot.is_closed()


@pytest.mark.asyncio
async def test_start_bot_swallows_cancellation():
    bot = SimpleNamespace(start=AsyncMock(side_effect=asyncio.CancelledError()))
    await main.start_bot(bot, "token")
    bot.start.assert_awaited_once_with("token")


def test_main_restarts_with_os_execv_on_exit_code_42(isolated_main):
    with patch("bantrap.main.asyncio.run", side_effect=lambda coro: (coro.close(), 42)[1]):
        with patch("bantrap.main.os.execv") as execv_mock:
            with patch("bantrap.main.sys.executable", "/usr/bin/python"):
                with patch("bantrap.main.sys.argv", ["bantrap"]):
                    main.main()

    execv_mock.assert_called_once_with("/usr/bin/python", ["/usr/bin/python", "bantrap"])


def test_main_returns_exit_code(isolated_main):
    with patch("bantrap.main.asyncio.run", side_effect=lambda coro: (coro.close(), 1)[1]):
        assert main.main() == 1
