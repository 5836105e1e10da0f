# settings_module.py
# settings.json loader. Keeps the hyphenated key names of the original bot
# config so existing files keep working.

import json
from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError


class SettingsError(Exception):
    """settings.json is missing or malformed"""


class _Section(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AccountSettings(_Section):
    username: str = "AfkBot"
    password: str = ""
    type: str = "offline"


class ServerSettings(_Section):
    ip: str = "localhost"
    port: int = 25565
    version: Optional[str] = None


class PositionSettings(_Section):
    enabled: bool = False
    x: float = 0
    y: float = 0
    z: float = 0


class AutoAuthSettings(_Section):
    enabled: bool = False
    password: str = ""
    timeout: Optional[float] = 30.0


class AntiAfkSettings(_Section):
    enabled: bool = False
    sneak: bool = False


class ChatMessageSettings(_Section):
    enabled: bool = False
    repeat: bool = False
    repeat_delay: float = Field(60, alias="repeat-delay")
    messages: List[str] = Field(default_factory=list)


class AiSettings(_Section):
    enabled: bool = False
    backend: str = "gemini"
    model: str = "gemini-1.5-flash"
    kobold_url: str = Field("http://127.0.0.1:5001", alias="kobold-url")


class UtilsSettings(_Section):
    auto_auth: AutoAuthSettings = Field(default_factory=AutoAuthSettings, alias="auto-auth")
    anti_afk: AntiAfkSettings = Field(default_factory=AntiAfkSettings, alias="anti-afk")
    chat_messages: ChatMessageSettings = Field(default_factory=ChatMessageSettings, alias="chat-messages")
    auto_reconnect: bool = Field(True, alias="auto-reconnect")
    # milliseconds; older files use the misspelled key
    auto_reconnect_delay: int = Field(
        5000,
        validation_alias=AliasChoices("auto-reconnect-delay", "auto-recconect-delay", "auto_reconnect_delay"),
    )
    gemini_ai: AiSettings = Field(default_factory=AiSettings, alias="gemini-ai")


class CombatSettings(_Section):
    allow_list: List[str] = Field(default_factory=list, alias="allow-list")
    guard_radius: float = Field(16, alias="guard-radius")
    eat_below: float = Field(10, alias="eat-below")


class CommandSettings(_Section):
    ai_trigger: str = Field("@gemini", alias="ai-trigger")
    fight_trigger: str = Field("@fight", alias="fight-trigger")
    stop_trigger: str = Field("@stop", alias="stop-trigger")
    max_reply_length: int = Field(100, alias="max-reply-length")


class WebSettings(_Section):
    enabled: bool = True
    port: int = 8000


class BotSettings(_Section):
    account: AccountSettings = Field(default_factory=AccountSettings, alias="bot-account")
    server: ServerSettings = Field(default_factory=ServerSettings)
    position: PositionSettings = Field(default_factory=PositionSettings)
    utils: UtilsSettings = Field(default_factory=UtilsSettings)
    combat: CombatSettings = Field(default_factory=CombatSettings)
    commands: CommandSettings = Field(default_factory=CommandSettings)
    web: WebSettings = Field(default_factory=WebSettings)

    @property
    def reconnect_delay_seconds(self) -> float:
        return self.utils.auto_reconnect_delay / 1000


def load_settings(path="settings.json") -> BotSettings:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise SettingsError(f"Settings file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise SettingsError(f"Settings file {path} is not valid JSON: {e}") from e

    try:
        return BotSettings.model_validate(raw)
    except ValidationError as e:
        raise SettingsError(f"Invalid settings in {path}:\n{e}") from e
