# idle_behaviors.py
# Scripted behaviors that keep the account from being kicked for idling:
# held jump/sneak controls and a list of chat lines, optionally on repeat.

import asyncio

from bot_state import add_log


def apply_anti_afk(client, anti_afk):
    """Hold jump (and sneak if configured) for the rest of the session."""
    if not anti_afk.enabled:
        return
    try:
        client.set_control_state("jump", True)
        if anti_afk.sneak:
            client.set_control_state("sneak", True)
    except Exception as e:
        add_log(f"Anti-AFK controls rejected: {e}", "warning")
        return
    add_log("Anti-AFK enabled" + (" (sneaking)" if anti_afk.sneak else ""))


class ChatScheduler:
    """Sends the configured chat lines; run() is meant to be a session task."""

    def __init__(self, client, chat_settings, sleep=asyncio.sleep):
        self.client = client
        self.messages = list(chat_settings.messages)
        self.repeat = chat_settings.repeat
        self.delay = chat_settings.repeat_delay
        self.sleep = sleep
        self.sent = 0

    async def run(self):
        if not self.messages:
            return

        if not self.repeat:
            for message in self.messages:
                self._send(message)
            return

        add_log(f"Chat messages repeating every {self.delay}s")
        index = 0
        while True:
            await self.sleep(self.delay)
            self._send(self.messages[index])
            index = (index + 1) % len(self.messages)

    def _send(self, message):
        try:
            self.client.chat(message)
            self.sent += 1
        except Exception as e:
            add_log(f"Scheduled chat failed: {e}", "warning")
