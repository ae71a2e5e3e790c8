"""Interactive visitor playground.

Drives a :class:`BehaviorTracker` over an in-memory transport and feeds
every emitted ``behaviorUpdate`` into a :class:`BehaviorMonitor`, so the
score, the queue, and the alerts can be watched as a visitor browses.
"""

from __future__ import annotations

import asyncio
import json
import shlex
from argparse import Namespace
from dataclasses import replace

from intake_funnel.channel import events
from intake_funnel.channel.channel import EventChannel
from intake_funnel.channel.transports.memory import InMemoryTransport
from intake_funnel.config import IntakeConfig, load_config_file
from intake_funnel.monitor import BehaviorMonitor
from intake_funnel.tracker import BehaviorTracker

_CONNECTION_ID = "playground"


def _print_help() -> None:
    print("Commands:")
    print("  /view <page> [type]   Page view (type 'department' counts as a topic)")
    print("  /exit                 Close the current page")
    print("  /scroll <percent>     Scroll the current page")
    print("  /click <label>        Click something on the current page")
    print("  /score                Show the current snapshot")
    print("  /summary              Show the consultation intent summary")
    print("  /drop                 Drop the connection (events queue up)")
    print("  /connect              Reconnect and drain the queue")
    print("  /alerts               Show lead alerts raised so far")
    print("  /end                  End the session")
    print("  /help                 Show this help")
    print("  /quit                 Leave the playground")
    print()


class _PlaygroundState:
    def __init__(self, config: IntakeConfig) -> None:
        self.transport = InMemoryTransport()
        self.channel = EventChannel(self.transport, policy=config.reconnect)
        self.tracker = BehaviorTracker.from_config(config)
        self.monitor = BehaviorMonitor.from_config(config)
        self._forwarded = 0

    def forward(self) -> None:
        """Hand newly emitted behavior updates to the monitor."""
        new = self.transport.emitted[self._forwarded:]
        self._forwarded = len(self.transport.emitted)
        for name, payload in new:
            if name != events.BEHAVIOR_UPDATE:
                continue
            alert = self.monitor.handle_update(_CONNECTION_ID, payload)
            if alert is not None:
                print(f"  ! alert: {alert['alert_type']} (score {alert['score']})")


async def _handle_input(state: _PlaygroundState, line: str) -> bool:
    """Handle one line of input. Returns False to quit."""
    try:
        parts = shlex.split(line)
    except ValueError as exc:
        print(f"Error: {exc}")
        return True
    if not parts:
        return True
    cmd, args = parts[0].lower(), parts[1:]
    tracker = state.tracker

    if cmd in ("/quit", "/q"):
        return False
    if cmd == "/help":
        _print_help()
    elif cmd == "/view" and args:
        await tracker.track_page_view(args[0], args[1] if len(args) > 1 else "general")
    elif cmd == "/exit":
        await tracker.track_page_exit()
    elif cmd == "/scroll" and args:
        try:
            sent = await tracker.track_scroll(float(args[0]))
        except ValueError:
            print("Usage: /scroll <percent>")
            return True
        if not sent:
            print("  (no new 25% boundary, nothing sent)")
    elif cmd == "/click" and args:
        await tracker.track_click("button", " ".join(args))
    elif cmd == "/score":
        print(json.dumps(tracker.snapshot(), indent=2))
    elif cmd == "/summary":
        print(json.dumps(tracker.intent_summary(), indent=2))
    elif cmd == "/drop":
        await state.transport.drop()
        await state.channel.disconnect()
        print("Connection dropped; updates will queue.")
    elif cmd == "/connect":
        ok = await state.channel.connect()
        print("Connected." if ok else "Connect failed.")
    elif cmd == "/alerts":
        for alert in state.monitor.alerts:
            print(f"  {alert['alert_type']} score={alert['score']} {alert['departments']}")
        if not state.monitor.alerts:
            print("No alerts yet.")
    elif cmd == "/end":
        score = await tracker.end_session()
        print(f"Session ended with score {score}.")
    else:
        print(f"Unknown command: {line.strip()}. Type /help for available commands.")

    state.forward()
    pending = state.channel.pending_count
    if pending:
        print(f"  [{pending} events queued]")
    return True


def run_playground(args: Namespace) -> None:
    config = load_config_file(args.config) if args.config else IntakeConfig()
    if args.threshold:
        config = replace(config, high_value_threshold=args.threshold)
    config = replace(config, transport="memory")

    print()
    print("Intake Funnel Playground")
    print("Type /help for commands, /quit to exit.")
    print()

    async def _loop() -> None:
        state = _PlaygroundState(config)
        await state.tracker.init()
        await state.tracker.attach_channel(state.channel)
        await state.channel.connect()
        state.forward()
        print(f"Session {state.tracker.session.session_id} ready.")
        while True:
            try:
                line = input("visitor> ")
            except (EOFError, KeyboardInterrupt):
                print()
                break
            if not await _handle_input(state, line):
                break

    try:
        asyncio.run(_loop())
    except KeyboardInterrupt:
        pass
    print("Goodbye.")
