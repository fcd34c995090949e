"""
Quick diagnostic for the voice conversational turn endpoint.

This script helps you:
1. Check the backend health route
2. Check the grade policy route
3. Run one forcing-turn round trip and confirm the scripted line comes back
4. Confirm the reply payload has the expected shape

Usage:
    python scripts/verify_turn_endpoint.py [--base-url http://localhost:8000] [--grade 6]
"""

import argparse
import os
import sys
from urllib.parse import urljoin

import requests
from dotenv import load_dotenv

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "cue_voice_coach", "src"))

from cue_voice_coach.curriculum_scripts import forced_opening  # noqa: E402
from cue_voice_coach.grade_policy import normalize_grade_band  # noqa: E402
from cue_voice_coach.scenario_classifier import classify  # noqa: E402
from cue_voice_coach.turn_backend import TurnRequest, forcing_instruction  # noqa: E402


def check_health(base_url: str) -> bool:
    print(f"\n🩺 Checking health route: {base_url}")
    try:
        response = requests.get(urljoin(base_url, "/"), timeout=10)
    except requests.exceptions.RequestException as e:
        print(f"❌ Backend unreachable: {e}")
        return False

    if response.status_code != 200:
        print(f"❌ Health route returned status {response.status_code}")
        return False

    body = response.json()
    print(f"✅ {body.get('service')} {body.get('version')}")
    if not body.get("openai_configured"):
        print("⚠️  OPENAI_API_KEY is not set on the backend - turn requests will return 503")
    return True


def check_policy(base_url: str, grade: str) -> bool:
    print(f"\n🎚️ Checking policy route for grade {grade}")
    try:
        response = requests.get(urljoin(base_url, f"/api/voice/policy/{grade}"), timeout=10)
    except requests.exceptions.RequestException as e:
        print(f"❌ Policy request failed: {e}")
        return False

    if response.status_code != 200:
        print(f"❌ Policy route returned status {response.status_code}")
        return False

    policy = response.json()
    print(
        f"✅ Band {policy['gradeBand']}: {policy['wordLimit']} words, "
        f"{policy['interTurnDelayMs']}ms delay, {policy['silenceTimeoutMs']}ms silence"
    )
    return True


def check_forcing_turn(base_url: str, grade: str, scenario: str, token: str = None) -> bool:
    print(f"\n🎯 Forcing-turn round trip ({scenario!r}, grade {grade})")
    band = normalize_grade_band(grade)
    scripted = forced_opening(band, classify(scenario))
    request = TurnRequest(
        conversation_history=[{"role": "user", "text": forcing_instruction(scripted)}],
        scenario_title=scenario,
        grade_level=grade,
        phase="intro",
        curriculum_script=scripted,
        force_verbatim=True,
    )
    headers = {"Authorization": f"Bearer {token}"} if token else {}

    try:
        response = requests.post(
            urljoin(base_url, "/api/voice/conversation"),
            json=request.to_payload(),
            headers=headers,
            timeout=30,
        )
    except requests.exceptions.RequestException as e:
        print(f"❌ Turn request failed: {e}")
        return False

    if response.status_code != 200:
        print(f"❌ Turn endpoint returned status {response.status_code}")
        print(f"   Response: {response.text[:200]}")
        return False

    try:
        body = response.json()
    except ValueError:
        print("❌ Turn endpoint returned malformed JSON")
        return False

    reply = body.get("aiResponse")
    if not isinstance(reply, str) or not reply.strip():
        print("❌ Reply has no aiResponse")
        return False

    if reply.strip().strip('"') == scripted:
        print("✅ Model repeated the scripted opening verbatim")
    else:
        print("⚠️  Model paraphrased the scripted opening (the orchestrator delivers the script anyway)")
        print(f"   Expected: {scripted[:100]}...")
        print(f"   Got:      {reply[:100]}...")
    print(f"   shouldContinue={body.get('shouldContinue')} phase={body.get('phase')}")
    return True


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(description="Verify the voice turn endpoint")
    parser.add_argument("--base-url", default=os.getenv("VOICE_BACKEND_URL", "http://localhost:8000"))
    parser.add_argument("--grade", default="6")
    parser.add_argument("--scenario", default="Starting a conversation")
    parser.add_argument("--token", default=os.getenv("VOICE_BEARER_TOKEN"))
    args = parser.parse_args()

    print("=" * 70)
    print("🔍 VOICE TURN ENDPOINT DIAGNOSTICS")
    print("=" * 70)

    health_ok = check_health(args.base_url)
    if not health_ok:
        print("\n❌ Cannot proceed - backend is not reachable")
        print("\n📝 ACTION REQUIRED:")
        print("   1. cd backend")
        print("   2. python main.py")
        return False

    policy_ok = check_policy(args.base_url, args.grade)
    turn_ok = check_forcing_turn(args.base_url, args.grade, args.scenario, args.token)

    print("\n" + "=" * 70)
    print("📊 DIAGNOSTIC SUMMARY")
    print("=" * 70)
    print(f"Health route:   {'✅ PASS' if health_ok else '❌ FAIL'}")
    print(f"Policy route:   {'✅ PASS' if policy_ok else '❌ FAIL'}")
    print(f"Forcing turn:   {'✅ PASS' if turn_ok else '❌ FAIL'}")

    return health_ok and policy_ok and turn_ok


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
