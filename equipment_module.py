# equipment_module.py
# Gear selection: rates raw item names, picks the best weapon/armor/food from an
# inventory snapshot, and wraps the client's equip calls so a missing item is
# never fatal.

from typing import List, Optional

from bot_state import add_log
from game_client import InventoryItem

ARMOR_SLOTS = ("head", "torso", "legs", "feet")

# --- Item catalog ---
# Damage per hit by material, times attack speed, gives a rough DPS rating
SWORD_DAMAGE = {"wooden": 4, "golden": 4, "stone": 5, "iron": 6, "diamond": 7, "netherite": 8}
AXE_DAMAGE = {"wooden": 7, "golden": 7, "stone": 9, "iron": 9, "diamond": 9, "netherite": 10}
ATTACK_SPEED = {"sword": 1.6, "axe": 0.9, "trident": 1.1}

ARMOR_PIECES = {
    "helmet": "head",
    "chestplate": "torso",
    "leggings": "legs",
    "boots": "feet",
}
ARMOR_DEFENSE = {
    "leather": {"head": 1, "torso": 3, "legs": 2, "feet": 1},
    "golden": {"head": 2, "torso": 5, "legs": 3, "feet": 1},
    "chainmail": {"head": 2, "torso": 5, "legs": 4, "feet": 1},
    "iron": {"head": 2, "torso": 6, "legs": 5, "feet": 2},
    "diamond": {"head": 3, "torso": 8, "legs": 6, "feet": 3},
    "netherite": {"head": 3, "torso": 8, "legs": 6, "feet": 3},
}
ARMOR_TOUGHNESS = {"diamond": 2, "netherite": 3}

FOODS = {
    "apple", "golden_apple", "enchanted_golden_apple", "golden_carrot",
    "bread", "baked_potato", "carrot", "potato", "beetroot", "melon_slice",
    "sweet_berries", "glow_berries", "cookie", "pumpkin_pie", "mushroom_stew",
    "rabbit_stew", "beetroot_soup", "dried_kelp",
    "cooked_beef", "cooked_porkchop", "cooked_chicken", "cooked_mutton",
    "cooked_rabbit", "cooked_cod", "cooked_salmon",
    "beef", "porkchop", "mutton", "rabbit", "cod", "salmon",
}


def describe_item(name: str, slot: int, count: int = 1) -> InventoryItem:
    """Classify and rate a raw item name such as 'diamond_sword'."""
    material, _, kind = name.rpartition("_")

    if kind == "sword" and material in SWORD_DAMAGE:
        rating = SWORD_DAMAGE[material] * ATTACK_SPEED["sword"]
        return InventoryItem(name, "weapon", slot, count, offensive_rating=round(rating, 2))
    if kind == "axe" and material in AXE_DAMAGE:
        rating = AXE_DAMAGE[material] * ATTACK_SPEED["axe"]
        return InventoryItem(name, "weapon", slot, count, offensive_rating=round(rating, 2))
    if name == "trident":
        return InventoryItem(name, "weapon", slot, count, offensive_rating=round(9 * ATTACK_SPEED["trident"], 2))

    if name == "turtle_helmet":
        return InventoryItem(name, "head", slot, count, defensive_rating=2.0)
    if kind in ARMOR_PIECES and material in ARMOR_DEFENSE:
        armor_slot = ARMOR_PIECES[kind]
        # Toughness only separates diamond from netherite
        rating = ARMOR_DEFENSE[material][armor_slot] + ARMOR_TOUGHNESS.get(material, 0) / 10
        return InventoryItem(name, armor_slot, slot, count, defensive_rating=rating)

    if name in FOODS:
        return InventoryItem(name, "food", slot, count)

    return InventoryItem(name, "other", slot, count)


# --- Pure selection ---
def _best(items: List[InventoryItem], category: str, key) -> Optional[InventoryItem]:
    candidates = [item for item in items if item.category == category]
    if not candidates:
        return None
    # sorted() is stable, so equal ratings keep inventory order
    return sorted(candidates, key=key, reverse=True)[0]


def select_best_weapon(inventory: List[InventoryItem]) -> Optional[InventoryItem]:
    return _best(inventory, "weapon", lambda item: item.offensive_rating)


def select_best_armor(inventory: List[InventoryItem], slot: str) -> Optional[InventoryItem]:
    if slot not in ARMOR_SLOTS:
        raise ValueError(f"Unknown armor slot: {slot}")
    return _best(inventory, slot, lambda item: item.defensive_rating)


def select_food(inventory: List[InventoryItem]) -> Optional[InventoryItem]:
    """First edible stack in inventory order"""
    for item in inventory:
        if item.category == "food":
            return item
    return None


class Outfitter:
    """Issues equip/consume actions for the selections above.

    Every method reports success as a bool and never raises: an empty
    inventory or a rejected equip is a normal outcome.
    """

    def __init__(self, client):
        self.client = client

    async def equip_best_weapon(self) -> bool:
        weapon = select_best_weapon(self.client.inventory_items())
        if weapon is None:
            return False
        return await self._equip(weapon, "hand")

    async def equip_full_armor(self) -> int:
        equipped = 0
        for slot in ARMOR_SLOTS:
            # Fresh snapshot per slot; the previous equip moved items around
            piece = select_best_armor(self.client.inventory_items(), slot)
            if piece is not None and await self._equip(piece, slot):
                equipped += 1
        if equipped:
            add_log(f"🛡️ Equipped {equipped} armor piece(s)")
        return equipped

    async def eat(self) -> bool:
        food = select_food(self.client.inventory_items())
        if food is None:
            return False
        if not await self._equip(food, "hand"):
            return False
        try:
            await self.client.consume()
        except Exception as e:
            add_log(f"Could not eat {food.name}: {e}", "warning")
            return False
        add_log(f"🍖 Ate {food.name}")
        return True

    async def _equip(self, item: InventoryItem, destination: str) -> bool:
        try:
            await self.client.equip(item, destination)
            return True
        except Exception as e:
            add_log(f"Equip {item.name} -> {destination} failed: {e}", "warning")
            return False
