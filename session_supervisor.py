# session_supervisor.py
# Owns one connection at a time: builds a fresh AgentSession per attempt,
# wires its event handlers, tears it down on disconnect and reconnects.

import asyncio

from auth_module import AuthSequencer
from bot_state import add_log, shared_state, update_state
from combat_module import CombatArbiter
from command_module import CommandDispatcher
from equipment_module import Outfitter
from game_client import Vec3
from idle_behaviors import ChatScheduler, apply_anti_afk

# Longest wait for held commands when the login handshake has no timeout
HOLD_LIMIT = 60.0


class FixedDelayPolicy:
    """Same wait before every reconnect, forever. Availability over politeness."""

    def __init__(self, delay_seconds: float):
        self.delay_seconds = delay_seconds

    def next_delay(self, attempt: int) -> float:
        return self.delay_seconds


class AgentSession:
    """Everything that lives exactly as long as one connection."""

    def __init__(self, client, settings, brain=None, session_id=1, hold_limit=HOLD_LIMIT):
        self.client = client
        self.settings = settings
        self.session_id = session_id
        self.hold_limit = hold_limit

        self.outfitter = Outfitter(client)
        self.arbiter = CombatArbiter(
            client,
            self.outfitter,
            guard_radius=settings.combat.guard_radius,
            eat_below=settings.combat.eat_below,
        )
        self.auth = AuthSequencer(client, step_timeout=settings.utils.auto_auth.timeout)
        self.dispatcher = CommandDispatcher(
            client,
            self.arbiter,
            self.outfitter,
            brain=brain,
            allow_list=settings.combat.allow_list,
            ai_trigger=settings.commands.ai_trigger,
            fight_trigger=settings.commands.fight_trigger,
            stop_trigger=settings.commands.stop_trigger,
            max_reply_length=settings.commands.max_reply_length,
        )
        self.chat_scheduler = ChatScheduler(client, settings.utils.chat_messages)

        # Commands wait for the login handshake instead of racing it
        if settings.utils.auto_auth.enabled:
            self.dispatcher.hold_until_released()

        self.alive = True
        self.spawned = False
        self._subscriptions = []
        self._tasks = set()

    # --- Subscription bookkeeping ---
    def subscribe(self, event, handler):
        """Attach a handler that goes quiet once the session is torn down."""
        def guarded(*args):
            if not self.alive:
                return
            result = handler(*args)
            if asyncio.iscoroutine(result):
                self.spawn(result)

        self.client.on(event, guarded)
        self._subscriptions.append((event, guarded))
        return guarded

    def spawn(self, coro):
        task = asyncio.get_running_loop().create_task(self._run_guarded(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_guarded(self, coro):
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as e:
            add_log(f"Session {self.session_id} handler error: {e}", "error")

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    @property
    def task_count(self) -> int:
        return len(self._tasks)

    def attach(self):
        self.subscribe("spawn", self._on_spawn)
        self.subscribe("chat", self.dispatcher.on_chat)
        self.subscribe("whisper", self.dispatcher.on_whisper)
        self.subscribe("physicsTick", self._on_tick)
        self.subscribe("stoppedAttacking", self.arbiter.on_combat_ended)
        self.subscribe("goal_reached", self._on_goal_reached)
        self.subscribe("death", self._on_death)
        self.subscribe("kicked", self._on_kicked)
        self.subscribe("error", self._on_error)

    def teardown(self):
        if not self.alive:
            return
        self.alive = False
        for event, handler in self._subscriptions:
            self.client.remove_listener(event, handler)
        self._subscriptions.clear()
        for task in list(self._tasks):
            task.cancel()

    # --- Handlers ---
    def _on_spawn(self):
        # Respawns after death emit spawn again; setup runs once
        if self.spawned:
            return
        self.spawned = True
        add_log("[AfkBot] Bot joined the server", "success")
        update_state(status="Running")

        utils = self.settings.utils
        if utils.auto_auth.enabled:
            self.spawn(self._authenticate(utils.auto_auth.password))
            if utils.auto_auth.timeout is None:
                self.spawn(self._release_after(self.hold_limit))

        self.spawn(self.outfitter.equip_full_armor())

        position = self.settings.position
        if position.enabled:
            self.arbiter.request_guard(Vec3(position.x, position.y, position.z))

        apply_anti_afk(self.client, utils.anti_afk)

        if utils.chat_messages.enabled:
            self.spawn(self.chat_scheduler.run())

    async def _authenticate(self, password):
        # Cancellation comes from teardown; held commands die with the session
        try:
            outcome = await self.auth.authenticate(password)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            add_log(f"Auth error: {e}, continuing unauthenticated", "error")
        else:
            if not outcome.ok:
                add_log("Continuing unauthenticated", "warning")
        if self.alive:
            await self.dispatcher.release()

    async def _release_after(self, seconds):
        await asyncio.sleep(seconds)
        if self.alive and self.dispatcher.holding:
            add_log(f"Login still pending after {seconds}s, releasing held commands", "warning")
            await self.dispatcher.release()

    def _on_tick(self):
        update_state(health=self.client.health)
        return self.arbiter.on_tick()

    def _on_goal_reached(self, *args):
        add_log(f"[AfkBot] Reached target location at {self.client.position}")

    def _on_death(self, *args):
        self.arbiter.on_death()
        add_log(f"[AfkBot] Bot died and respawned at {self.client.position}", "warning")

    def _on_kicked(self, reason=None, *args):
        add_log(f"[AfkBot] Bot kicked: {reason}", "warning")

    def _on_error(self, err=None, *args):
        add_log(f"[ERROR] {err}", "error")


class SessionSupervisor:
    """Keeps exactly one AgentSession alive, rebuilding it after every disconnect."""

    def __init__(self, settings, client_factory, brain=None, policy=None):
        self.settings = settings
        self.client_factory = client_factory
        self.brain = brain
        self.policy = policy or FixedDelayPolicy(settings.reconnect_delay_seconds)

        self.session = None
        self.attempt = 0
        self._reconnect_task = None
        self._stopping = False
        self._finished = asyncio.Event()

    async def start(self):
        if self.session is not None:
            self.session.teardown()

        self.attempt += 1
        client = self.client_factory(self.settings)
        session = AgentSession(client, self.settings, self.brain, session_id=self.attempt)
        session.attach()

        def on_end(reason=None, *args):
            self._on_end(session, reason)

        session.subscribe("end", on_end)
        self.session = session
        update_state(status="Connecting", session_count=self.attempt, intent="idle", auth="not_started")
        add_log(f"🚀 Connecting to {self.settings.server.ip}:{self.settings.server.port} (attempt {self.attempt})")

        try:
            await client.connect()
        except Exception as e:
            add_log(f"Connection failed: {e}", "error")
            self._on_end(session, str(e))

    def _on_end(self, session, reason):
        if session is not self.session or not session.alive:
            return
        session.teardown()
        update_state(status="Disconnected")
        add_log(f"Bot disconnected: {reason}")

        if self._stopping:
            return
        if not self.settings.utils.auto_reconnect:
            add_log("Auto-reconnect disabled, stopping")
            self._finished.set()
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_after_delay())

    async def _reconnect_after_delay(self):
        delay = self.policy.next_delay(self.attempt)
        add_log(f"Reconnecting in {delay}s...")
        await asyncio.sleep(delay)
        # Cleared first so a failed connect below can schedule the next attempt
        self._reconnect_task = None
        update_state(reconnect_count=shared_state.get("reconnect_count", 0) + 1)
        await self.start()

    async def run_forever(self):
        await self.start()
        await self._finished.wait()

    def stop(self):
        self._stopping = True
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None
        session = self.session
        if session is not None and session.alive:
            session.teardown()
            try:
                session.client.quit("shutdown")
            except Exception as e:
                add_log(f"Quit failed: {e}", "warning")
        update_state(status="Stopped")
        self._finished.set()
