"""Tests for session wiring, teardown and reconnects."""

import asyncio

import pytest

import bot_state
from combat_module import Guarding, Pursuing
from conftest import FakeBrain, FakeGameClient, make_settings, settle
from game_client import GoalBlock, Vec3
from session_supervisor import AgentSession, FixedDelayPolicy, SessionSupervisor


class RecordingPolicy(FixedDelayPolicy):
    def __init__(self, delay_seconds=0):
        super().__init__(delay_seconds)
        self.calls = []

    def next_delay(self, attempt):
        self.calls.append(attempt)
        return super().next_delay(attempt)


class ClientFactory:
    def __init__(self, setup=None):
        self.clients = []
        self.setup = setup

    def __call__(self, settings):
        client = FakeGameClient(username=settings.account.username)
        if self.setup is not None:
            self.setup(client, len(self.clients))
        self.clients.append(client)
        return client


def make_supervisor(overrides=None, brain=None, setup=None):
    settings = make_settings(overrides)
    factory = ClientFactory(setup)
    policy = RecordingPolicy(0)
    supervisor = SessionSupervisor(settings, factory, brain=brain, policy=policy)
    return supervisor, factory, policy


class TestStart:
    """Test building and wiring a session."""

    @pytest.mark.asyncio
    async def test_start_connects_and_wires(self):
        supervisor, factory, _ = make_supervisor()
        await supervisor.start()

        client = factory.clients[0]
        assert client.connect_calls == 1
        assert supervisor.session.alive
        assert client.listener_count("chat") == 1
        assert client.listener_count("physicsTick") == 1
        assert client.listener_count("end") == 1
        assert bot_state.shared_state["session_count"] == 1

    @pytest.mark.asyncio
    async def test_spawn_runs_session_setup(self):
        """First spawn authenticates, equips armor, guards and holds jump."""
        supervisor, factory, _ = make_supervisor({
            "position": {"enabled": True},
            "utils": {
                "auto-auth": {"enabled": True},
                "anti-afk": {"enabled": True, "sneak": True},
            },
        })
        await supervisor.start()
        client = factory.clients[0]
        client.give("iron_helmet")

        client.emit("spawn")
        await settle()

        assert "/register hunter2 hunter2" in client.sent_chat()
        assert ("equip", "iron_helmet", "head") in client.actions
        assert ("goal", GoalBlock(Vec3(10, 64, -5))) in client.actions
        assert ("control", "jump", True) in client.actions
        assert ("control", "sneak", True) in client.actions
        assert supervisor.session.arbiter.intent == Guarding(Vec3(10, 64, -5))

    @pytest.mark.asyncio
    async def test_respawn_does_not_rerun_setup(self):
        supervisor, factory, _ = make_supervisor({"utils": {"auto-auth": {"enabled": True}}})
        await supervisor.start()
        client = factory.clients[0]
        client.emit("spawn")
        await settle()
        client.emit("spawn")
        await settle()
        assert client.sent_chat().count("/register hunter2 hunter2") == 1

    @pytest.mark.asyncio
    async def test_chat_routed_to_dispatcher(self):
        supervisor, factory, _ = make_supervisor(brain=FakeBrain(answer="Near spawn, look for the sign."))
        await supervisor.start()
        client = factory.clients[0]

        client.emit("chat", "Alice", "@gemini where is the shop")
        await settle()

        assert client.sent_chat() == ["@Alice Thinking...", "@Alice Near spawn, look for the sign."]

    @pytest.mark.asyncio
    async def test_commands_held_until_login(self):
        """A combat order that beats the login handshake is replayed after it."""
        supervisor, factory, _ = make_supervisor({"utils": {"auto-auth": {"enabled": True}}})
        await supervisor.start()
        client = factory.clients[0]
        client.add_player(5, "Bob")
        client.emit("spawn")
        await settle()

        client.emit("whisper", "KingSoulified", "@fight Bob")
        await settle()
        assert not isinstance(supervisor.session.arbiter.intent, Pursuing)

        client.emit("messagestr", "Successfully registered!")
        await settle()
        client.emit("messagestr", "Successfully logged in")
        await settle()

        assert isinstance(supervisor.session.arbiter.intent, Pursuing)

    @pytest.mark.asyncio
    async def test_failed_login_releases_commands(self):
        """The agent stays up unauthenticated and still answers."""
        supervisor, factory, _ = make_supervisor(
            {"utils": {"auto-auth": {"enabled": True}}}, brain=FakeBrain(answer="Hi!")
        )
        await supervisor.start()
        client = factory.clients[0]
        client.emit("spawn")
        await settle()
        client.emit("chat", "Alice", "@gemini hello")
        client.emit("messagestr", "Unknown or invalid command")
        await settle()

        assert supervisor.session.alive
        assert "@Alice Hi!" in client.sent_chat()

    @pytest.mark.asyncio
    async def test_ticks_drive_arbiter(self):
        supervisor, factory, _ = make_supervisor()
        await supervisor.start()
        client = factory.clients[0]
        client.add_player(9, "Steve", Vec3(2, 64, 0))

        client.emit("physicsTick")
        await settle()

        assert len(client.of("look")) == 1
        assert bot_state.shared_state["health"] == 20.0


class TestReconnect:
    """Test teardown and the reconnect policy."""

    @pytest.mark.asyncio
    async def test_end_schedules_one_reconnect(self):
        supervisor, factory, policy = make_supervisor()
        await supervisor.start()
        first = factory.clients[0]

        first.emit("end", "socketClosed")
        await settle()

        assert policy.calls == [1]
        assert len(factory.clients) == 2
        assert factory.clients[1].connect_calls == 1
        assert supervisor.session.client is factory.clients[1]

    @pytest.mark.asyncio
    async def test_old_session_is_silent_after_teardown(self):
        """Stray events on the old connection produce nothing."""
        supervisor, factory, policy = make_supervisor(brain=FakeBrain())
        await supervisor.start()
        first = factory.clients[0]
        first.add_player(5, "Bob")

        first.emit("end", "socketClosed")
        first.emit("end", "socketClosed")
        first.emit("chat", "Alice", "@gemini still there?")
        first.emit("whisper", "KingSoulified", "@fight Bob")
        first.emit("physicsTick")
        await settle()

        assert first.listener_count() == 0
        assert first.actions == []
        assert policy.calls == [1]
        assert len(factory.clients) == 2

    @pytest.mark.asyncio
    async def test_kick_then_end(self):
        """A kick is logged; the end that follows drives the reconnect."""
        supervisor, factory, policy = make_supervisor()
        await supervisor.start()
        first = factory.clients[0]

        first.emit("kicked", "You have been idle for too long")
        await settle()
        assert len(factory.clients) == 1

        first.emit("end", "kicked")
        await settle()
        assert len(factory.clients) == 2
        assert any("kicked" in line for line in bot_state.mission_log)

    @pytest.mark.asyncio
    async def test_error_event_does_not_reconnect(self):
        supervisor, factory, policy = make_supervisor()
        await supervisor.start()
        factory.clients[0].emit("error", "ECONNRESET")
        await settle()
        assert policy.calls == []
        assert supervisor.session.alive

    @pytest.mark.asyncio
    async def test_connect_failure_retries(self):
        """A refused connection is treated like a disconnect."""
        def setup(client, index):
            if index == 0:
                client.connect_error = ConnectionRefusedError("refused")

        supervisor, factory, policy = make_supervisor(setup=setup)
        await supervisor.start()
        await settle()

        assert len(factory.clients) == 2
        assert supervisor.session.alive
        assert supervisor.session.client is factory.clients[1]

    @pytest.mark.asyncio
    async def test_reconnect_disabled_finishes(self):
        supervisor, factory, policy = make_supervisor({"utils": {"auto-reconnect": False}})
        runner = asyncio.create_task(supervisor.run_forever())
        await settle()

        factory.clients[0].emit("end", "socketClosed")
        await asyncio.wait_for(runner, 1)

        assert policy.calls == []
        assert len(factory.clients) == 1

    @pytest.mark.asyncio
    async def test_stop_quits_and_cancels(self):
        supervisor, factory, policy = make_supervisor()
        runner = asyncio.create_task(supervisor.run_forever())
        await settle()

        supervisor.stop()
        await asyncio.wait_for(runner, 1)

        client = factory.clients[0]
        assert ("quit", "shutdown") in client.actions
        assert client.listener_count() == 0
        assert not supervisor.session.alive

    @pytest.mark.asyncio
    async def test_fresh_state_per_session(self):
        """Intent and anchor do not survive a reconnect."""
        supervisor, factory, _ = make_supervisor()
        await supervisor.start()
        first_session = supervisor.session
        first_session.arbiter.request_guard(Vec3(1, 2, 3))

        factory.clients[0].emit("end", "socketClosed")
        await settle()

        assert supervisor.session is not first_session
        assert supervisor.session.arbiter.anchor is None


class TestHeldCommands:
    """Test what happens to commands held for the login handshake."""

    @pytest.mark.asyncio
    async def test_teardown_drops_held_commands(self):
        """Commands held for login are not replayed once the session is gone."""
        brain = FakeBrain(answer="hi")
        supervisor, factory, _ = make_supervisor(
            {"utils": {"auto-auth": {"enabled": True, "timeout": None}}}, brain=brain
        )
        await supervisor.start()
        client = factory.clients[0]
        client.emit("spawn")
        await settle()
        client.emit("chat", "Alice", "@gemini question")
        await settle()

        supervisor.session.teardown()
        await settle()

        assert brain.prompts == []
        assert client.sent_chat() == ["/register hunter2 hunter2"]
        assert client.listener_count("messagestr") == 0

    @pytest.mark.asyncio
    async def test_silent_login_releases_after_hold_limit(self):
        """Without an auth timeout, held commands still run after the hold limit."""
        settings = make_settings({"utils": {"auto-auth": {"enabled": True, "timeout": None}}})
        client = FakeGameClient()
        session = AgentSession(client, settings, brain=FakeBrain(answer="Hi!"), hold_limit=0.01)
        session.attach()
        client.emit("spawn")
        await settle()
        client.emit("chat", "Alice", "@gemini hello")
        await settle()
        assert session.dispatcher.holding

        await asyncio.sleep(0.05)
        await settle()

        assert not session.dispatcher.holding
        assert "@Alice Hi!" in client.sent_chat()
        session.teardown()
