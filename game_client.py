# game_client.py
# The "body" interface the agent drives: world value types, navigation goals,
# a small event emitter and the abstract game client.
# Concrete protocol work lives in mineflayer_client.py.

import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional


@dataclass(frozen=True)
class Vec3:
    """A world coordinate"""
    x: float
    y: float
    z: float

    def distance_to(self, other: "Vec3") -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def offset(self, dx: float = 0.0, dy: float = 0.0, dz: float = 0.0) -> "Vec3":
        return Vec3(self.x + dx, self.y + dy, self.z + dz)

    def __str__(self):
        return f"({self.x:.1f}, {self.y:.1f}, {self.z:.1f})"


@dataclass
class Entity:
    """Snapshot of a world entity as reported by the client"""
    id: int
    name: str                       # e.g. "zombie", "player", "armor_stand"
    kind: str                       # player | hostile | mob | animal | object | other
    position: Vec3
    username: Optional[str] = None  # players only
    height: float = 1.8


@dataclass(frozen=True)
class InventoryItem:
    """One inventory stack, rated by the equipment catalog"""
    name: str
    category: str                   # weapon | head | torso | legs | feet | food | other
    slot: int
    count: int = 1
    offensive_rating: float = 0.0
    defensive_rating: float = 0.0


@dataclass(frozen=True)
class GoalBlock:
    """Navigate to a fixed block"""
    position: Vec3


@dataclass(frozen=True)
class GoalFollow:
    """Keep within `range` blocks of an entity"""
    entity_id: int
    range: float = 1.0


@dataclass(frozen=True)
class EntityRef:
    """Identity of an entity, resolved live through the client on every use.

    Entities despawn, so the Entity snapshot itself is never kept. Player
    references resolve by username first since ids change when a player
    relogs.
    """
    entity_id: int
    username: Optional[str] = None

    @classmethod
    def for_entity(cls, entity: Entity) -> "EntityRef":
        return cls(entity_id=entity.id, username=entity.username)

    def resolve(self, client: "GameClient") -> Optional[Entity]:
        if self.username:
            return client.player_entity(self.username)
        return client.entity_by_id(self.entity_id)

    @property
    def label(self) -> str:
        return self.username or f"entity#{self.entity_id}"


class EventEmitter:
    """Minimal synchronous event emitter (same shape as node's EventEmitter)"""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}

    def on(self, event: str, handler: Callable) -> Callable:
        self._listeners.setdefault(event, []).append(handler)
        return handler

    def once(self, event: str, handler: Callable) -> Callable:
        def wrapper(*args):
            self.remove_listener(event, wrapper)
            return handler(*args)
        return self.on(event, wrapper)

    def remove_listener(self, event: str, handler: Callable):
        handlers = self._listeners.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(handlers) for handlers in self._listeners.values())

    def emit(self, event: str, *args):
        # Copy so handlers may detach themselves while being called
        for handler in list(self._listeners.get(event, [])):
            handler(*args)


class GameClient(EventEmitter):
    """Abstract game-protocol client.

    Events emitted: spawn, chat(username, message), whisper(username, message),
    messagestr(line), physicsTick, stoppedAttacking, goal_reached, death,
    kicked(reason), error(err), end(reason).

    Action calls are fire-and-forget and may raise when the server or the
    client rejects them; callers decide whether that matters.
    """

    username: str = ""

    async def connect(self):
        raise NotImplementedError

    def quit(self, reason: str = "disconnect"):
        raise NotImplementedError

    # --- State queries ---
    @property
    def health(self) -> float:
        raise NotImplementedError

    @property
    def position(self) -> Vec3:
        raise NotImplementedError

    def inventory_items(self) -> List[InventoryItem]:
        raise NotImplementedError

    def entities(self) -> List[Entity]:
        raise NotImplementedError

    def entity_by_id(self, entity_id: int) -> Optional[Entity]:
        raise NotImplementedError

    def player_entity(self, username: str) -> Optional[Entity]:
        raise NotImplementedError

    def is_moving(self) -> bool:
        raise NotImplementedError

    # --- Actions ---
    def chat(self, text: str):
        raise NotImplementedError

    def whisper(self, username: str, text: str):
        raise NotImplementedError

    def set_goal(self, goal):
        """Replace the navigation goal (None stops pathing)"""
        raise NotImplementedError

    def attack(self, entity: Entity):
        raise NotImplementedError

    def stop_attack(self):
        raise NotImplementedError

    async def equip(self, item: InventoryItem, destination: str):
        raise NotImplementedError

    async def consume(self):
        raise NotImplementedError

    def look_at(self, position: Vec3):
        raise NotImplementedError

    def set_control_state(self, control: str, state: bool):
        raise NotImplementedError
