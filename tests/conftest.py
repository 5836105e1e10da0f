"""
Pytest fixtures for the bot tests.

Provides a recording fake game client, a scripted brain and settings builders.
"""

import asyncio
import copy

import pytest

import bot_state
from game_client import Entity, GameClient, Vec3
from equipment_module import describe_item
from llm_module import BrainError
from settings_module import BotSettings


class FakeGameClient(GameClient):
    """In-memory client that records every action it is asked to perform."""

    def __init__(self, username="AfkBot"):
        super().__init__()
        self.username = username
        self.current_health = 20.0
        self.current_position = Vec3(0, 64, 0)
        self.items = []
        self.world = {}          # entity id -> Entity
        self.moving = False
        self.actions = []
        self.rejected = set()
        self.connect_error = None
        self.connect_calls = 0

    # --- test helpers ---
    def give(self, *names):
        for name in names:
            self.items.append(describe_item(name, slot=36 + len(self.items)))

    def add_entity(self, entity):
        self.world[entity.id] = entity
        return entity

    def add_player(self, entity_id, username, position=Vec3(3, 64, 0)):
        return self.add_entity(Entity(entity_id, "player", "player", position, username=username))

    def add_mob(self, entity_id, name, position, kind="hostile"):
        return self.add_entity(Entity(entity_id, name, kind, position))

    def reject(self, action):
        self.rejected.add(action)

    def _record(self, action, *args):
        if action in self.rejected:
            raise RuntimeError(f"{action} rejected")
        self.actions.append((action, *args))

    def of(self, action):
        return [entry for entry in self.actions if entry[0] == action]

    def sent_chat(self):
        return [entry[1] for entry in self.of("chat")]

    def sent_whispers(self):
        return [(entry[1], entry[2]) for entry in self.of("whisper")]

    # --- GameClient ---
    async def connect(self):
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error

    def quit(self, reason="disconnect"):
        self.actions.append(("quit", reason))

    @property
    def health(self):
        return self.current_health

    @property
    def position(self):
        return self.current_position

    def inventory_items(self):
        return list(self.items)

    def entities(self):
        return list(self.world.values())

    def entity_by_id(self, entity_id):
        return self.world.get(entity_id)

    def player_entity(self, username):
        for entity in self.world.values():
            if entity.username == username:
                return entity
        return None

    def is_moving(self):
        return self.moving

    def chat(self, text):
        self._record("chat", text)

    def whisper(self, username, text):
        self._record("whisper", username, text)

    def set_goal(self, goal):
        self._record("goal", goal)

    def attack(self, entity):
        self._record("attack", entity.id)

    def stop_attack(self):
        self._record("stop_attack")

    async def equip(self, item, destination):
        self._record("equip", item.name, destination)

    async def consume(self):
        self._record("consume")

    def look_at(self, position):
        self._record("look", position)

    def set_control_state(self, control, state):
        self._record("control", control, state)


class FakeBrain:
    """Brain that returns a canned answer (or raises) and keeps the prompts."""

    def __init__(self, answer="Sure.", error=None):
        self.answer = answer
        self.error = error
        self.prompts = []

    async def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


BASE_SETTINGS = {
    "bot-account": {"username": "AfkBot", "password": "", "type": "offline"},
    "server": {"ip": "localhost", "port": 25565, "version": "1.20.1"},
    "position": {"enabled": False, "x": 10, "y": 64, "z": -5},
    "utils": {
        "auto-auth": {"enabled": False, "password": "hunter2", "timeout": 1},
        "anti-afk": {"enabled": False, "sneak": False},
        "chat-messages": {"enabled": False, "repeat": False, "repeat-delay": 60, "messages": []},
        "auto-reconnect": True,
        "auto-reconnect-delay": 0,
        "gemini-ai": {"enabled": True},
    },
    "combat": {"allow-list": ["KingSoulified"]},
}


def _merge(base, overrides):
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def make_settings(overrides=None):
    raw = _merge(copy.deepcopy(BASE_SETTINGS), overrides or {})
    return BotSettings.model_validate(raw)


async def settle(rounds=10):
    """Let scheduled tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def clean_state():
    bot_state.reset_state()
    yield
    bot_state.reset_state()


@pytest.fixture
def client():
    return FakeGameClient()


@pytest.fixture
def brain():
    return FakeBrain()


@pytest.fixture
def settings():
    return make_settings()
