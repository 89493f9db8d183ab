"""
Offline console demo: runs a full booking call without any API keys.

Uses the real orchestrator, date resolver, phone flow and guardrails with
an in-memory calendar and an in-memory booking store. No model, no speech
synthesis, no network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario correction
    python console_demo.py --scenario closed_day
"""

import argparse
import asyncio
import sys
import uuid
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from salon_receptionist.assistant import VoiceAssistant
from salon_receptionist.config import AppConfig, settings
from salon_receptionist.schemas.booking_schema import CallAction, TurnReply
from salon_receptionist.tools.booking import InMemoryBookingSubmitter
from salon_receptionist.tools.calendar import InMemoryCalendar

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


class ConsoleSession:
    """Plays one call in the terminal."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "booking": [
            "Hi, I'd like a haircut with Cosmo",
            "next Tuesday at 11",
            "Sam Lee",
            "905 555 1234",
            "yes",
            "yes",
        ],
        "correction": [
            "Can I get a colour with Cassidy on Friday at 2?",
            "what day is that?",
            "Jordan",
            "nine oh five five five five one two three four",
            "yes",
            "actually make it 3 pm",
            "yes",
        ],
        "closed_day": [
            "I want a cut and colour with Vince on Sunday at 10",
            "what times are open on Monday?",
            "Monday at 1",
            "Alex Kim",
            "416 555 0000",
            "yes",
            "yes",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self, config: AppConfig = settings, assistant: Optional[VoiceAssistant] = None) -> None:
        self.config = config
        if assistant is None:
            tz = ZoneInfo(config.business.timezone)
            calendar = InMemoryCalendar.seeded(
                tz,
                datetime.now(tz).date(),
                config.business.open_hour,
                config.business.close_hour,
            )
            self.bookings = InMemoryBookingSubmitter()
            assistant = VoiceAssistant.from_config(
                config, calendar=calendar, submitter=self.bookings
            )
        self.assistant = assistant
        self.call_id = f"console-{uuid.uuid4().hex[:8]}"
        self._last: Optional[TurnReply] = None

    def agent_say(self, reply: TurnReply) -> None:
        print(f"{GREEN}{BOLD}[{self.config.agent_name}]{RESET} {GREEN}{reply.text}{RESET}")
        if reply.booking_ref:
            print(f"{YELLOW}  Booking reference: {reply.booking_ref}{RESET}")
        if reply.action is CallAction.TRANSFER:
            print(f"{YELLOW}  Transferring to {reply.transfer_to}{RESET}")

    def system_log(self, reply: TurnReply) -> None:
        print(f"{DIM}  >> State: {reply.state} | action: {reply.action.value}{RESET}")

    def _call_over(self) -> bool:
        return self._last is not None and self._last.action is not CallAction.LISTEN

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  SALON RECEPTIONIST - {title}{RESET}")
        print(f"{BOLD}  Salon: {self.config.business.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def _footer(self, title: str) -> None:
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        if self._last is not None:
            print(f"{DIM}  Final state: {self._last.state}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def _greet(self) -> None:
        self._last = await self.assistant.start_call(self.call_id)
        self.agent_say(self._last)

    async def _turn(self, text: str) -> None:
        self._last = await self.assistant.handle_turn(self.call_id, text)
        self.agent_say(self._last)
        self.system_log(self._last)

    async def _run_scenario(self, scenario: str) -> None:
        steps = self.SCENARIOS[scenario]
        self._banner(f"Scenario: {scenario}")
        await self._greet()
        for step in steps:
            if self._call_over():
                break
            print(f"\n{BLUE}[Caller] {RESET}{step}")
            await self._turn(step)
        self._footer(f"Scenario '{scenario}' complete.")

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        if scenario not in self.SCENARIOS:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return
        asyncio.run(self._run_scenario(scenario))

    async def _run_interactive(self) -> None:
        self._banner("Console Demo (type 'quit' to exit)")
        await self._greet()
        while not self._call_over():
            user_input = input(f"\n{BLUE}[Caller] {RESET}").strip()
            if user_input.lower() in ("quit", "exit", "q"):
                self.assistant.end_call(self.call_id)
                print(f"\n{DIM}Session ended.{RESET}")
                return
            if len(user_input) > self.MAX_INPUT_LENGTH:
                print(f"{RED}  Input too long, keep it under {self.MAX_INPUT_LENGTH} characters.{RESET}")
                continue
            # Blank input is passed through and treated as silence
            await self._turn(user_input)
        self._footer("Call complete.")

    def run(self) -> None:
        asyncio.run(self._run_interactive())


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Salon receptionist console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        help="Auto-play a pre-scripted call instead of reading from stdin",
    )
    args = parser.parse_args(argv)

    session = ConsoleSession()
    try:
        if args.scenario:
            session.run_scenario(args.scenario)
        else:
            session.run()
    except (KeyboardInterrupt, EOFError):
        print(f"\n{DIM}Session ended.{RESET}")
        sys.exit(0)


if __name__ == "__main__":
    main()
