"""
Salon receptionist entry point.

Console mode runs offline against an in-memory calendar and booking store.
Live mode builds the assistant from the environment (webhook, Google
Calendar, OpenAI fallback, Cartesia synthesis when their keys are set) and
drives it through the same hold-and-poll cycle a telephony transport uses.

Usage:
    Console mode: python main.py console [--scenario booking]
    Live mode:    python main.py live
"""

import argparse
import asyncio
import logging
import uuid

from salon_receptionist.config import settings

logger = logging.getLogger(__name__)


async def _live_call() -> None:
    """One call typed at the terminal, answered through submit/poll."""
    from salon_receptionist.assistant import VoiceAssistant
    from salon_receptionist.schemas.booking_schema import CallAction

    assistant = VoiceAssistant.from_config(settings)
    await assistant.warm_up()

    stop = asyncio.Event()
    sweeper = asyncio.create_task(assistant.run_sweeper(stop))
    call_id = f"live-{uuid.uuid4().hex[:8]}"
    loop = asyncio.get_running_loop()

    try:
        reply = await assistant.start_call(call_id)
        print(f"[{settings.agent_name}] {reply.text}")
        while reply.action is CallAction.LISTEN:
            utterance = await loop.run_in_executor(None, input, "[Caller] ")
            hold = await assistant.submit_turn(call_id, utterance.strip())
            print(f"[{settings.agent_name}] {hold.text}")
            await asyncio.sleep(hold.poll_after_sec)
            result = assistant.poll(hold.token)
            while not result.ready:
                await asyncio.sleep(result.retry_after_sec or hold.poll_after_sec)
                result = assistant.poll(hold.token)
            reply = result.reply
            print(f"[{settings.agent_name}] {reply.text}")
        if reply.action is CallAction.TRANSFER:
            logger.info("Call handed off to %s", reply.transfer_to)
    finally:
        assistant.end_call(call_id)
        stop.set()
        await sweeper


def _run_live_mode() -> None:
    """Run a call with the configured integrations (requires API keys)."""
    asyncio.run(_live_call())


def _run_console_mode(scenario: str = None) -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    if scenario:
        session.run_scenario(scenario)
    else:
        session.run()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Salon phone receptionist")
    parser.add_argument("mode", nargs="?", choices=["console", "live"], default="console")
    parser.add_argument("--scenario", help="Console mode only: auto-play a scripted call")
    args = parser.parse_args()

    if args.mode == "live":
        _run_live_mode()
    else:
        _run_console_mode(args.scenario)
