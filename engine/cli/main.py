"""
Terminal client.

Text mode is a REPL: each line is sent as one turn and the reply is
printed as it streams in. Commands:

    /clear   clear the chat
    /voice   run the voice loop until Enter is pressed
    /quit    exit

Structured logs go to stderr; the conversation owns stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
from typing import TextIO

from dotenv import load_dotenv

from config import AppConfig
from context.ledger import Message
from observability.logger import set_enabled
from orchestrator.enums.mode import Mode
from session.engine import ConversationEngine

_STATUS_POLL_S = 0.1


class TerminalRenderer:
    """Prints assistant messages incrementally as the ledger updates."""

    def __init__(self, out: TextIO = sys.stdout) -> None:
        self._out = out
        self._printed: dict[str, str] = {}

    def on_update(self, message: Message) -> None:
        if message.role != "assistant":
            return

        shown = self._printed.get(message.id)
        if shown is None:
            self._out.write("agent> ")
            shown = ""

        if message.content.startswith(shown):
            self._out.write(message.content[len(shown):])
        else:
            # Content was replaced (failed turn)
            self._out.write("\n" + message.content)

        self._printed[message.id] = message.content
        self._out.flush()

    def end_turn(self) -> None:
        self._out.write("\n")
        self._out.flush()


async def _read_line(prompt: str) -> str | None:
    try:
        return await asyncio.to_thread(input, prompt)
    except EOFError:
        return None


async def _watch_voice(engine: ConversationEngine, out: TextIO) -> None:
    last: tuple[str, str, str] | None = None
    while True:
        voice = engine.voice
        view = (voice.status(), voice.transcript, voice.accumulator)
        if view != last:
            label, transcript, reply = view
            out.write(f"[{label}]")
            if transcript and label == "Thinking...":
                out.write(f" you: {transcript}")
            if reply and label == "Speaking...":
                out.write(f" agent: {reply}")
            out.write("\n")
            out.flush()
            last = view
        await asyncio.sleep(_STATUS_POLL_S)


async def _run_voice(engine: ConversationEngine, out: TextIO) -> None:
    if not engine.voice_available:
        out.write("Voice mode needs OPENAI_API_KEY.\n")
        return

    await engine.start_voice()
    watcher = asyncio.create_task(_watch_voice(engine, out))
    try:
        await _read_line("(press Enter to stop)\n")
    finally:
        watcher.cancel()
        await engine.set_mode(Mode.TEXT)
        out.write("[Stopped]\n")


async def _repl(engine: ConversationEngine, renderer: TerminalRenderer, out: TextIO) -> int:
    out.write(f"Connected as {engine.session_id}. Type /quit to exit.\n")

    while True:
        line = await _read_line("you> ")
        if line is None or line.strip() == "/quit":
            return 0

        command = line.strip()
        if command == "/clear":
            await engine.clear_chat()
            out.write("[Chat cleared]\n")
            continue
        if command == "/voice":
            await _run_voice(engine, out)
            continue

        if await engine.send_text(line) is None:
            continue
        await engine.text.wait()
        renderer.end_turn()


async def _main_async(config: AppConfig, *, voice: bool) -> int:
    renderer = TerminalRenderer()
    engine = ConversationEngine.from_config(config, on_update=renderer.on_update)
    try:
        if voice:
            await _run_voice(engine, sys.stdout)
            return 0
        return await _repl(engine, renderer, sys.stdout)
    finally:
        await engine.aclose()


def main(argv: list[str] | None = None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="voice-agent-client",
        description="Chat with the agent by text or voice.",
    )
    parser.add_argument("--api-url", help="backend base URL (overrides API_URL)")
    parser.add_argument("--voice", action="store_true", help="start in voice mode")
    parser.add_argument("--no-logs", action="store_true", help="silence JSONL logs")
    args = parser.parse_args(argv)

    config = AppConfig.load_from_env()
    if args.api_url:
        config = dataclasses.replace(config, api_base_url=args.api_url)

    set_enabled(config.enable_json_logs and not args.no_logs)

    try:
        return asyncio.run(_main_async(config, voice=args.voice))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
