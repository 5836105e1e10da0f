# combat_module.py
# Combat/movement arbiter: owns the agent's intent (idle / guarding / pursuing)
# and turns every physics tick into at most one kind of action.

import time
from dataclasses import dataclass
from typing import Optional, Union

from bot_state import add_log, update_state
from equipment_module import select_food
from game_client import Entity, EntityRef, GoalBlock, GoalFollow, Vec3

GUARD_RADIUS = 16
EAT_BELOW = 10
EAT_COOLDOWN = 3.0
FOLLOW_RANGE = 1

HOSTILE_KINDS = {"hostile", "mob"}
# Reported as mobs by some server versions but never worth a swing
NON_THREATENING = {
    "armor_stand", "item", "experience_orb", "arrow", "painting", "item_frame",
    "villager", "wandering_trader", "iron_golem", "snow_golem", "bat",
}


# --- Intent variants ---
@dataclass(frozen=True)
class Idle:
    def describe(self) -> str:
        return "idle"


@dataclass(frozen=True)
class Guarding:
    anchor: Vec3

    def describe(self) -> str:
        return f"guarding {self.anchor}"


@dataclass(frozen=True)
class Pursuing:
    target: EntityRef

    def describe(self) -> str:
        return f"pursuing {self.target.label}"


Intent = Union[Idle, Guarding, Pursuing]
IDLE = Idle()


class CombatArbiter:
    """Single writer of the session's intent.

    Other components ask for transitions through the request_* methods.
    on_tick() is a coroutine; while it is suspended on an equip or a meal,
    further ticks are skipped so two ticks never interleave.
    """

    def __init__(self, client, outfitter, guard_radius=GUARD_RADIUS, eat_below=EAT_BELOW,
                 eat_cooldown=EAT_COOLDOWN, clock=time.monotonic):
        self.client = client
        self.outfitter = outfitter
        self.guard_radius = guard_radius
        self.eat_below = eat_below
        self.eat_cooldown = eat_cooldown
        self.clock = clock

        self._intent: Intent = IDLE
        self._anchor: Optional[Vec3] = None
        self._engaged: Optional[EntityRef] = None
        self._needs_weapon = False
        self._busy = False
        self._last_meal: Optional[float] = None

    @property
    def intent(self) -> Intent:
        return self._intent

    @property
    def anchor(self) -> Optional[Vec3]:
        return self._anchor

    @property
    def engaged(self) -> Optional[EntityRef]:
        return self._engaged

    # --- Transition requests ---
    def request_guard(self, anchor: Vec3):
        self._anchor = anchor
        if isinstance(self._intent, Pursuing):
            # Pursuit overrides guarding; the new anchor is used once it ends
            add_log(f"Guard anchor moved to {anchor} (after pursuit)")
            return
        self._set_intent(Guarding(anchor))
        self._return_to_anchor()

    def request_pursue(self, target: EntityRef, armed: bool = False):
        """Start chasing `target`; armed=True when the caller already equipped a weapon."""
        self._engaged = None
        self._needs_weapon = not armed
        self._set_intent(Pursuing(target))

    def request_stand_down(self) -> bool:
        if not isinstance(self._intent, Pursuing):
            return False
        self._end_pursuit()
        return True

    def clear_guard(self):
        self._anchor = None
        if isinstance(self._intent, Guarding):
            self._engaged = None
            self._set_intent(IDLE)
            self._safe(self.client.set_goal, None)

    # --- External signals ---
    def on_combat_ended(self):
        self._engaged = None
        if isinstance(self._intent, Guarding):
            self._return_to_anchor()

    def on_death(self):
        self._engaged = None

    async def on_tick(self):
        if self._busy:
            return
        self._busy = True
        try:
            await self._tick()
        finally:
            self._busy = False

    async def _tick(self):
        if self._should_eat():
            self._last_meal = self.clock()
            await self.outfitter.eat()
            return

        intent = self._intent
        if isinstance(intent, Pursuing):
            await self._pursue_tick(intent)
        elif isinstance(intent, Guarding):
            await self._guard_tick(intent)
        else:
            self._idle_tick()

    def _should_eat(self) -> bool:
        if self.client.health >= self.eat_below:
            return False
        if self._last_meal is not None and self.clock() - self._last_meal < self.eat_cooldown:
            return False
        return select_food(self.client.inventory_items()) is not None

    async def _pursue_tick(self, intent: Pursuing):
        target = intent.target.resolve(self.client)
        if target is None:
            add_log(f"Lost sight of {intent.target.label}")
            self._end_pursuit()
            return

        if self._needs_weapon:
            self._needs_weapon = False
            await self.outfitter.equip_best_weapon()
            # Intent may have been replaced while equipping
            if self._intent is not intent:
                return
            target = intent.target.resolve(self.client)
            if target is None:
                self._end_pursuit()
                return

        self._safe(self.client.set_goal, GoalFollow(target.id, FOLLOW_RANGE))
        self._safe(self.client.attack, target)

    async def _guard_tick(self, intent: Guarding):
        if self._engaged is not None:
            if self._engaged.resolve(self.client) is not None:
                return
            # Target vanished without a combat-ended signal
            self.on_combat_ended()
            return

        hostile = self.nearest_hostile()
        if hostile is None:
            return

        await self.outfitter.equip_best_weapon()
        if self._intent is not intent:
            return
        hostile = self.client.entity_by_id(hostile.id)
        if hostile is None:
            return

        self._engaged = EntityRef.for_entity(hostile)
        add_log(f"⚔️ Engaging {hostile.name} near {intent.anchor}")
        self._safe(self.client.attack, hostile)

    def _idle_tick(self):
        if self._engaged is not None or self.client.is_moving():
            return
        entity = self.nearest_entity()
        if entity is not None:
            self._safe(self.client.look_at, entity.position.offset(dy=entity.height))

    # --- Helpers ---
    def nearest_hostile(self) -> Optional[Entity]:
        here = self.client.position
        best, best_distance = None, None
        for entity in self.client.entities():
            if entity.kind not in HOSTILE_KINDS or entity.name in NON_THREATENING:
                continue
            distance = entity.position.distance_to(here)
            if distance > self.guard_radius:
                continue
            if best is None or distance < best_distance:
                best, best_distance = entity, distance
        return best

    def nearest_entity(self) -> Optional[Entity]:
        here = self.client.position
        candidates = [e for e in self.client.entities() if e.kind != "object"]
        if not candidates:
            return None
        return min(candidates, key=lambda e: e.position.distance_to(here))

    def _end_pursuit(self):
        self._engaged = None
        self._needs_weapon = False
        self._safe(self.client.stop_attack)
        if self._anchor is not None:
            self._set_intent(Guarding(self._anchor))
            self._return_to_anchor()
        else:
            self._set_intent(IDLE)
            self._safe(self.client.set_goal, None)

    def _return_to_anchor(self):
        if self._anchor is None:
            return
        add_log(f"Moving to guard position {self._anchor}")
        self._safe(self.client.set_goal, GoalBlock(self._anchor))

    def _set_intent(self, intent: Intent):
        if intent == self._intent:
            return
        self._intent = intent
        update_state(intent=intent.describe())
        add_log(f"🎯 Intent -> {intent.describe()}")

    def _safe(self, action, *args):
        """Fire-and-forget client call; a rejection is just no effect this tick."""
        try:
            action(*args)
        except Exception as e:
            add_log(f"{getattr(action, '__name__', 'action')} rejected: {e}", "warning")
