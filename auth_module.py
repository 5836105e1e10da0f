# auth_module.py
# Register/login handshake against AuthMe-style server plugins.
# The server answers in free text, so each step listens on raw chat lines and
# classifies them with a small phrase table.

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bot_state import add_log, update_state


class AuthState(Enum):
    NOT_STARTED = "not_started"
    AWAITING_REGISTER_ACK = "awaiting_register_ack"
    AWAITING_LOGIN_ACK = "awaiting_login_ack"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class OutcomeKind(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class AuthOutcome:
    kind: OutcomeKind
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


class LineVerdict(Enum):
    ACK = "ack"
    REJECTED = "rejected"


# --- Phrase table ---
# Rejections are checked first: "not registered" must not count as "registered"
STEP_PHRASES = {
    "register": {
        LineVerdict.REJECTED: ("invalid command",),
        LineVerdict.ACK: ("successfully registered", "already registered"),
    },
    "login": {
        LineVerdict.REJECTED: ("invalid password", "wrong password", "not registered"),
        LineVerdict.ACK: ("successfully logged in", "already logged in"),
    },
}


def classify_server_line(step: str, line: str) -> Optional[LineVerdict]:
    """Best-effort verdict for one server line, or None if it is unrelated."""
    text = line.lower()
    phrases = STEP_PHRASES[step]
    for verdict in (LineVerdict.REJECTED, LineVerdict.ACK):
        if any(phrase in text for phrase in phrases[verdict]):
            return verdict
    return None


class AuthSequencer:
    """Runs the two-step handshake once for a session."""

    def __init__(self, client, step_timeout: Optional[float] = None, classifier=classify_server_line):
        self.client = client
        self.step_timeout = step_timeout
        self.classifier = classifier
        self.state = AuthState.NOT_STARTED
        self.failure_reason: Optional[str] = None

    def _set_state(self, state: AuthState):
        self.state = state
        update_state(auth=state.value)

    async def authenticate(self, password: str) -> AuthOutcome:
        if self.state is not AuthState.NOT_STARTED:
            raise RuntimeError("Authentication already ran for this session")

        self._set_state(AuthState.AWAITING_REGISTER_ACK)
        outcome = await self._run_step("register", f"/register {password} {password}")
        if not outcome.ok:
            return self._fail(outcome)
        add_log("Registration OK.")

        self._set_state(AuthState.AWAITING_LOGIN_ACK)
        outcome = await self._run_step("login", f"/login {password}")
        if not outcome.ok:
            return self._fail(outcome)

        self._set_state(AuthState.AUTHENTICATED)
        add_log("🔐 Login successful.", "success")
        return outcome

    def _fail(self, outcome: AuthOutcome) -> AuthOutcome:
        self.failure_reason = outcome.reason
        self._set_state(AuthState.FAILED)
        add_log(f"Auth {outcome.kind.value}: {outcome.reason}", "error")
        return outcome

    async def _run_step(self, step: str, command: str) -> AuthOutcome:
        loop = asyncio.get_running_loop()
        verdict = loop.create_future()

        def listener(line):
            if verdict.done():
                return
            result = self.classifier(step, str(line))
            if result is LineVerdict.ACK:
                verdict.set_result(AuthOutcome(OutcomeKind.SUCCESS))
            elif result is LineVerdict.REJECTED:
                verdict.set_result(AuthOutcome(OutcomeKind.FAILURE, f"{step} rejected: {line}"))

        # Listen before sending so a fast reply is not missed
        self.client.on("messagestr", listener)
        try:
            self.client.chat(command)
            add_log(f"[Auth] Sent /{step} command.")
            if self.step_timeout is None:
                return await verdict
            try:
                return await asyncio.wait_for(verdict, self.step_timeout)
            except asyncio.TimeoutError:
                return AuthOutcome(OutcomeKind.TIMEOUT, f"no {step} reply within {self.step_timeout}s")
        finally:
            self.client.remove_listener("messagestr", listener)
