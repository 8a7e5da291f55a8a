"""
Services referenced by the stack files of the CLI tests.
Each one appends to EVENTS so the tests can check the call order.
"""
import asyncio

EVENTS = []


class Database:
    def __init__(self, url="sqlite://"):
        self.url = url

    async def init(self):
        EVENTS.append("db.init")

    async def start(self):
        await asyncio.sleep(0)
        EVENTS.append("db.start")

    async def stop(self):
        EVENTS.append("db.stop")


class WebServer:
    def __init__(self, port=8080):
        self.port = port

    def start(self):
        EVENTS.append(f"web.start:{self.port}")

    def stop(self):
        EVENTS.append("web.stop")


class Broken:
    async def start(self):
        raise ConnectionError("cannot bind")
