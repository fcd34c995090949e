"""
Terminal practice session with the Cue voice coach.

Type what you would say out loud; the coach's lines are printed as they
would be spoken. Uses the HTTP turn endpoint by default, or the chat model
directly with --direct.

Commands:
    /retry    rerun the last turn after a content-policy failure
    /summary  print the session summary
    /quit     end the session

Usage:
    python scripts/practice_session.py --grade 4 --scenario "Making friends"
    python scripts/practice_session.py --grade 10 --direct
    python scripts/practice_session.py --grade K --record-events
"""

import argparse
import asyncio
import json
import logging
import os
import sys

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(project_root, "cue_voice_coach", "src"))
sys.path.insert(0, os.path.join(project_root, "backend"))

from lib.logger import setup_logging  # noqa: E402
from lib.supabase_client import get_supabase_client  # noqa: E402

from cue_voice_coach.session_controller import VoiceSessionController  # noqa: E402
from cue_voice_coach.session_events import SupabaseEventSink, build_event_sink  # noqa: E402
from cue_voice_coach.session_state import Phase  # noqa: E402
from cue_voice_coach.settings import CoachSettings  # noqa: E402
from cue_voice_coach.speech import PrintingSpeechSynthesizer  # noqa: E402
from cue_voice_coach.turn_backend import HttpTurnBackend, OpenAITurnBackend  # noqa: E402


def build_backend(settings: CoachSettings, direct: bool):
    if direct:
        return OpenAITurnBackend(api_key=settings.openai_api_key, model=settings.openai_model)
    return HttpTurnBackend(settings.turn_endpoint_url, timeout=settings.generation_timeout_seconds)


async def run(args) -> int:
    settings = CoachSettings.from_env()
    try:
        backend = build_backend(settings, args.direct)
    except ValueError as e:
        print(f"❌ {e}")
        return 1

    event_sink = None
    if args.record_events:
        event_sink = build_event_sink(get_supabase_client())
        if event_sink is None:
            print("⚠️  Supabase is not configured, session events will not be stored")

    controller = VoiceSessionController(
        backend=backend,
        synthesizer=PrintingSpeechSynthesizer(time_scale=0.0 if args.fast else 1.0),
        settings=settings,
        event_sink=event_sink,
    )

    print("=" * 70)
    print(f"🎙️  PRACTICE SESSION: {args.scenario} (grade {args.grade})")
    print("=" * 70)

    await controller.start_session(args.scenario, args.grade)

    try:
        while controller.session.phase is not Phase.COMPLETE:
            line = await asyncio.to_thread(input, "You: ")
            command = line.strip().lower()

            if command == "/quit":
                break
            if command == "/summary":
                print(json.dumps(controller.session_summary(), indent=2))
                continue
            if command == "/retry":
                task = controller.retry_last_turn()
                if task is None:
                    print("ℹ️  Nothing to retry")
                    continue
            else:
                task = controller.submit_user_utterance(line)
                if task is None:
                    continue

            await task
            error = controller.session.last_error
            if error is not None:
                print(f"⚠️  {error} (type /retry to try again)")
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        await controller.end_session()
        await backend.aclose()
        if isinstance(event_sink, SupabaseEventSink):
            await event_sink.flush()

    print("\n" + "=" * 70)
    print("📊 SESSION SUMMARY")
    print("=" * 70)
    print(json.dumps(controller.session_summary(), indent=2))
    return 0


def main():
    parser = argparse.ArgumentParser(description="Practice a social-skills scenario with Cue")
    parser.add_argument("--grade", default="6", help="Grade level, e.g. K, 4, 9-12")
    parser.add_argument("--scenario", default="Starting a conversation", help="Scenario title")
    parser.add_argument("--direct", action="store_true", help="Call the chat model directly instead of the backend")
    parser.add_argument("--fast", action="store_true", help="Do not pause for simulated speech playback")
    parser.add_argument("--verbose", action="store_true", help="Show orchestrator logs")
    parser.add_argument("--record-events", action="store_true", help="Store session events in Supabase")
    args = parser.parse_args()

    setup_logging(level=logging.INFO if args.verbose else logging.WARNING)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
