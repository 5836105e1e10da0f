# mineflayer_client.py
# GameClient backed by mineflayer (+ pathfinder and pvp plugins) through the
# JSPyBridge `javascript` package. Node.js and the npm packages must be
# installed; JSPyBridge fetches missing packages on first require().
#
# Bridge callbacks arrive on a worker thread and are handed to the asyncio
# loop before any core handler sees them.

import asyncio
from typing import List, Optional

from bot_state import add_log
from equipment_module import describe_item
from game_client import Entity, GameClient, GoalBlock, GoalFollow, InventoryItem, Vec3

FORWARDED_EVENTS = (
    "spawn", "chat", "whisper", "messagestr", "physicsTick", "stoppedAttacking",
    "goal_reached", "death", "kicked", "error", "end",
)
TEXT_EVENTS = {"chat", "whisper", "messagestr", "kicked", "error", "end"}

# Arguments kept per event, matching the GameClient event contract.
# mineflayer sends more: chat/whisper add translate, jsonMsg and matches;
# messagestr adds position, jsonMsg, sender and verified; kicked adds loggedIn.
EVENT_ARITY = {
    "spawn": 0,
    "chat": 2,
    "whisper": 2,
    "messagestr": 1,
    "physicsTick": 0,
    "stoppedAttacking": 0,
    "goal_reached": 0,
    "death": 0,
    "kicked": 1,
    "error": 1,
    "end": 1,
}


def translate_event_args(event, args):
    """Cut a mineflayer callback's arguments down to what core handlers take."""
    arity = EVENT_ARITY.get(event)
    if arity is not None:
        args = args[:arity]
    if event in TEXT_EVENTS:
        args = tuple(str(arg) if arg is not None else None for arg in args)
    return tuple(args)


class MineflayerClient(GameClient):
    def __init__(self, settings):
        super().__init__()
        self.settings = settings
        self.username = settings.account.username
        self.bot = None
        self._js = None
        self._loop = None
        self._goals = None
        self._vec3 = None

    async def connect(self):
        # Imported here: importing `javascript` boots a Node.js process
        import javascript

        self._js = javascript
        self._loop = asyncio.get_running_loop()
        mineflayer = javascript.require("mineflayer")
        pathfinder = javascript.require("mineflayer-pathfinder")
        pvp = javascript.require("mineflayer-pvp")
        self._goals = pathfinder.goals
        self._vec3 = javascript.require("vec3")

        account = self.settings.account
        server = self.settings.server
        options = {
            "username": account.username,
            "auth": account.type,
            "host": server.ip,
            "port": server.port,
        }
        if account.password:
            options["password"] = account.password
        if server.version:
            options["version"] = server.version

        self.bot = await asyncio.to_thread(mineflayer.createBot, options)
        self.bot.loadPlugin(pathfinder.pathfinder)
        self.bot.loadPlugin(pvp.plugin)
        self.bot.settings.colorsEnabled = False
        self.bot.pathfinder.setMovements(pathfinder.Movements(self.bot))

        for event in FORWARDED_EVENTS:
            self._forward(event)
        add_log(f"Mineflayer bot created for {account.username}")

    def _forward(self, event):
        @self._js.On(self.bot, event)
        def handler(this, *args):
            args = translate_event_args(event, args)
            if event == "spawn":
                # The account name can differ from the configured one (online auth)
                self.username = str(self.bot.username)
            self._loop.call_soon_threadsafe(self.emit, event, *args)

    def quit(self, reason="disconnect"):
        if self.bot is not None:
            self.bot.quit(reason)

    # --- State queries ---
    @property
    def health(self) -> float:
        return float(self.bot.health or 0)

    @property
    def position(self) -> Vec3:
        pos = self.bot.entity.position
        return Vec3(pos.x, pos.y, pos.z)

    def inventory_items(self) -> List[InventoryItem]:
        return [describe_item(str(item.name), int(item.slot), int(item.count))
                for item in self.bot.inventory.items()]

    def entities(self) -> List[Entity]:
        own_id = self.bot.entity.id
        values = self._js.globalThis.Object.values(self.bot.entities)
        return [self._to_entity(js) for js in values if js.id != own_id and js.position]

    def entity_by_id(self, entity_id: int) -> Optional[Entity]:
        js = self.bot.entities[entity_id]
        if not js or not js.isValid:
            return None
        return self._to_entity(js)

    def player_entity(self, username: str) -> Optional[Entity]:
        player = self.bot.players[username]
        if not player or not player.entity:
            return None
        return self._to_entity(player.entity)

    def is_moving(self) -> bool:
        return bool(self.bot.pathfinder.isMoving())

    @staticmethod
    def _to_entity(js) -> Entity:
        pos = js.position
        return Entity(
            id=int(js.id),
            name=str(js.name or "unknown"),
            kind=str(js.type or "other"),
            position=Vec3(pos.x, pos.y, pos.z),
            username=str(js.username) if js.username else None,
            height=float(js.height or 1.8),
        )

    # --- Actions ---
    def chat(self, text: str):
        self.bot.chat(text)

    def whisper(self, username: str, text: str):
        self.bot.whisper(username, text)

    def set_goal(self, goal):
        if goal is None:
            self.bot.pathfinder.setGoal(None)
        elif isinstance(goal, GoalBlock):
            p = goal.position
            self.bot.pathfinder.setGoal(self._goals.GoalBlock(p.x, p.y, p.z))
        elif isinstance(goal, GoalFollow):
            target = self.bot.entities[goal.entity_id]
            if not target:
                raise LookupError(f"entity {goal.entity_id} is gone")
            self.bot.pathfinder.setGoal(self._goals.GoalFollow(target, goal.range), True)
        else:
            raise TypeError(f"Unsupported goal: {goal!r}")

    def attack(self, entity: Entity):
        target = self.bot.entities[entity.id]
        if not target:
            raise LookupError(f"entity {entity.id} is gone")
        self.bot.pvp.attack(target)

    def stop_attack(self):
        self.bot.pvp.stop()

    async def equip(self, item: InventoryItem, destination: str):
        js_item = self.bot.inventory.slots[item.slot]
        if not js_item or str(js_item.name) != item.name:
            raise LookupError(f"{item.name} no longer in slot {item.slot}")
        # Bridge calls block until the JS promise settles
        await asyncio.to_thread(self.bot.equip, js_item, destination)

    async def consume(self):
        await asyncio.to_thread(self.bot.consume)

    def look_at(self, position: Vec3):
        self.bot.lookAt(self._vec3(position.x, position.y, position.z))

    def set_control_state(self, control: str, state: bool):
        self.bot.setControlState(control, state)
