# command_module.py
# Chat/whisper command handling: AI questions, privileged combat orders,
# and a hold queue for anything that arrives before login finishes.

from collections import deque
from typing import Iterable

from bot_state import add_log
from game_client import EntityRef
from llm_module import BrainError

AI_PREAMBLE = (
    "You are a friendly bot on a Minecraft survival server. "
    "Only answer questions about Minecraft and this server. "
    "Reply in one short sentence without markdown."
)
THINKING_REPLY = "Thinking..."
APOLOGY_REPLY = "Sorry, I can't think right now."
ELLIPSIS = "..."


def truncate_reply(text: str, limit: int = 100) -> str:
    """Clip to `limit` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit - len(ELLIPSIS)] + ELLIPSIS


class CommandDispatcher:
    """Routes inbound chat to at most one effect: ignore, AI reply or intent request.

    Privilege is an exact sender-name match against the allow-list. Names are
    not verified by the transport, so the list only keeps honest players out.
    """

    def __init__(self, client, arbiter, outfitter, brain=None,
                 allow_list: Iterable[str] = (),
                 ai_trigger="@gemini", fight_trigger="@fight", stop_trigger="@stop",
                 max_reply_length=100, queue_limit=20):
        self.client = client
        self.arbiter = arbiter
        self.outfitter = outfitter
        self.brain = brain
        self.allow_list = set(allow_list)
        self.ai_trigger = ai_trigger.lower()
        self.fight_trigger = fight_trigger.lower()
        self.stop_trigger = stop_trigger.lower()
        self.max_reply_length = max_reply_length

        self._gate_open = True
        self._pending = deque(maxlen=queue_limit)

    # --- Pre-auth queue ---
    def hold_until_released(self):
        self._gate_open = False

    @property
    def holding(self) -> bool:
        return not self._gate_open

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def release(self):
        """Open the gate and replay held messages in arrival order."""
        self._gate_open = True
        if self._pending:
            add_log(f"Replaying {len(self._pending)} held message(s)")
        while self._pending:
            sender, text, channel = self._pending.popleft()
            await self._dispatch(sender, text, channel)

    # --- Event entry points ---
    async def on_chat(self, sender: str, text: str):
        await self.handle(sender, text, "chat")

    async def on_whisper(self, sender: str, text: str):
        await self.handle(sender, text, "whisper")

    async def handle(self, sender: str, text: str, channel: str):
        if sender == self.client.username:
            return
        add_log(f"[{channel.upper()}] <{sender}> {text}")
        if not self._gate_open:
            self._pending.append((sender, text, channel))
            return
        await self._dispatch(sender, text, channel)

    async def _dispatch(self, sender: str, text: str, channel: str):
        text = text.strip()
        lowered = text.lower()

        if self.brain is not None and lowered.startswith(self.ai_trigger):
            await self._answer(sender, text[len(self.ai_trigger):].strip(), channel)
            return

        command, _, rest = text.partition(" ")
        command = command.lower()
        if command not in (self.fight_trigger, self.stop_trigger):
            return
        if sender not in self.allow_list:
            add_log(f"Ignored {command} from unprivileged {sender}", "warning")
            return

        if command == self.fight_trigger:
            await self._fight(sender, rest.split(), channel)
        else:
            self._stand_down(sender, channel)

    # --- Handlers ---
    async def _answer(self, sender: str, question: str, channel: str):
        if not question:
            self._reply(sender, f"Ask me something after {self.ai_trigger}", channel)
            return

        self._reply(sender, THINKING_REPLY, channel)
        prompt = f"{AI_PREAMBLE}\nPlayer {sender} asks: {question}"
        try:
            answer = await self.brain.complete(prompt)
        except BrainError as e:
            add_log(f"[AI Error] {e}", "error")
            answer = APOLOGY_REPLY
        except Exception as e:
            add_log(f"[AI Error] unexpected: {e}", "error")
            answer = APOLOGY_REPLY

        answer = truncate_reply(answer, self.max_reply_length)
        self._reply(sender, answer, channel)
        add_log(f"[AI Reply] {answer}")

    async def _fight(self, sender: str, args, channel: str):
        if not args:
            self._reply(sender, f"⚠️ Usage: {self.fight_trigger} <player>", channel)
            return

        name = args[0]
        entity = self.client.player_entity(name)
        if entity is None:
            self._reply(sender, f"⚠️ Player {name} not found.", channel)
            return

        self._reply(sender, f"⚔️ Attacking {name}!", channel)
        target = EntityRef.for_entity(entity)
        await self.outfitter.equip_best_weapon()
        self.arbiter.request_pursue(target, armed=True)

    def _stand_down(self, sender: str, channel: str):
        if self.arbiter.request_stand_down():
            self._reply(sender, "🛑 Standing down.", channel)
        else:
            self._reply(sender, "Not fighting anyone.", channel)

    def _reply(self, sender: str, text: str, channel: str):
        try:
            if channel == "whisper":
                self.client.whisper(sender, text)
            else:
                self.client.chat(f"@{sender} {text}")
        except Exception as e:
            add_log(f"Could not reply to {sender}: {e}", "warning")
