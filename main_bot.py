# main_bot.py
# AFK bot entry point: loads settings, starts the status page and keeps the
# agent connected forever.

import argparse
import asyncio

from dotenv import load_dotenv

from bot_state import add_log
from llm_module import BrainError, build_brain
from mineflayer_client import MineflayerClient
from session_supervisor import SessionSupervisor
from settings_module import SettingsError, load_settings
from web_server_module import StatusWebServer


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Minecraft AFK bot with Gemini chat")
    parser.add_argument("--settings", default="settings.json", help="path to settings.json")
    parser.add_argument("--no-web", action="store_true", help="do not start the status page")
    return parser.parse_args(argv)


async def run(settings):
    try:
        brain = build_brain(settings.utils.gemini_ai)
    except BrainError as e:
        add_log(f"AI chat disabled: {e}", "warning")
        brain = None

    supervisor = SessionSupervisor(settings, MineflayerClient, brain=brain)
    try:
        await supervisor.run_forever()
    finally:
        supervisor.stop()


def main(argv=None):
    """Main entry point"""
    print("🤖 Starting AfkBot...")
    load_dotenv()
    args = parse_args(argv)

    try:
        settings = load_settings(args.settings)
    except SettingsError as e:
        add_log(str(e), "error")
        raise SystemExit(1)

    if settings.web.enabled and not args.no_web:
        StatusWebServer(port=settings.web.port).run()

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        add_log("🛑 Shutdown requested")
    add_log("✅ Shutdown complete")


if __name__ == "__main__":
    main()
