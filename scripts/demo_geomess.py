"""
Demo script for proximity messaging.

Registers three devices standing within ~76m of each other and a fourth one
about 2km away, posts a message from one of them and shows who receives it.

Usage:
    uvicorn src.geomess.main:app --reload
    python scripts/demo_geomess.py
"""
import argparse
import uuid

import requests

API_URL = "http://localhost:8000"

# (name, longitude, latitude)
DEVICES = [
    ("Anna", 15.44, 66.40),
    ("Carl", 15.44016, 66.40),      # ~18m east of Anna
    ("Eva", 15.44, 66.40016),       # ~45m north of Anna (projected)
    ("Dan", 15.46, 66.40),          # ~2km east, out of range
]


def register(base_url: str, token: str, name: str, longitude: float, latitude: float) -> int:
    response = requests.post(
        f"{base_url}/api/v1/register",
        json={"uuid": token, "name": name, "longitude": longitude, "latitude": latitude},
        timeout=5,
    )
    data = response.json()
    if not data["result"]:
        raise RuntimeError(f"registration of {name} failed: {data.get('msg')}")
    return data["user_id"]


def main():
    parser = argparse.ArgumentParser(description="Demo proximity messaging")
    parser.add_argument("--url", default=API_URL, help=f"Base URL of the API (default: {API_URL})")
    parser.add_argument("--message", default="Hello, I am Carl", help="Text Carl posts")
    args = parser.parse_args()

    print("=" * 60)
    print("GEOMESS DEMO - messages within ~76m")
    print("=" * 60)
    print()

    # Check API is running
    try:
        response = requests.get(f"{args.url}/health", timeout=5)
        if response.json().get("redis") != "connected":
            print("ERROR: API is up but Redis is not reachable")
            return
        print("API is running")
    except requests.ConnectionError:
        print("ERROR: Cannot connect to API at", args.url)
        print("Make sure to run: uvicorn src.geomess.main:app --reload")
        return

    print()
    tokens = {}
    for name, longitude, latitude in DEVICES:
        tokens[name] = str(uuid.uuid4())
        user_id = register(args.url, tokens[name], name, longitude, latitude)
        print(f"  registered {name:<5} as user {user_id:<4} at ({longitude}, {latitude})")

    carl = DEVICES[1]
    response = requests.post(
        f"{args.url}/api/v1/messages",
        json={"uuid": tokens["Carl"], "longitude": carl[1], "latitude": carl[2], "message": args.message},
        timeout=5,
    )
    print()
    print(f"Carl posted message {response.json().get('message_id')}: {args.message!r}")
    print()
    print("-" * 60)

    for name, longitude, latitude in DEVICES:
        response = requests.get(
            f"{args.url}/api/v1/messages",
            params={"uuid": tokens[name], "longitude": longitude, "latitude": latitude, "newer_than": 0},
            timeout=5,
        )
        messages = response.json().get("messages", [])
        print(f"  {name:<5} sees {len(messages)} message(s)")
        for message in messages:
            print(f"      [{message['ts']}] {message['user_name']}: {message['message']}")

    print()


if __name__ == "__main__":
    main()
