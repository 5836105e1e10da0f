# web_server_module.py
# Status page for the bot: liveness text, dashboard state and the mission log.
# Runs uvicorn on a daemon thread so it never blocks the game loop.

import threading
import time

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from bot_state import mission_log, shared_state


class StatusWebServer:
    def __init__(self, state=None, log=None, host="0.0.0.0", port=8000):
        self.shared_state = shared_state if state is None else state
        self.mission_log = mission_log if log is None else log
        self.host = host
        self.port = port
        self.app = FastAPI(title="AfkBot status")
        self.setup_routes()

    def setup_routes(self):
        @self.app.get("/", response_class=PlainTextResponse)
        async def get_index():
            return "Bot is running with Google Gemini AI 🤖"

        @self.app.get("/status")
        async def get_status():
            return {
                **self.shared_state,
                'timestamp': time.time()
            }

        @self.app.get("/log")
        async def get_log(limit: int = 20):
            lines = list(self.mission_log)[:max(limit, 0)]
            return {'lines': lines, 'count': len(lines)}

    def run(self):
        def run_server():
            uvicorn.run(self.app, host=self.host, port=self.port, log_level="warning")

        server_thread = threading.Thread(target=run_server, name="status-web", daemon=True)
        server_thread.start()
        print(f"🌐 Status server started on port {self.port}")
