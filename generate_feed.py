import os
import random
import argparse
from datetime import datetime

import requests

# Config
API_URL = os.getenv("API_URL", "http://127.0.0.1:3000/api/v1/ingest/raw")
OUTPUT_PATH = os.getenv("FEED_OUTPUT", "data/generated.csv")

HEADER = ["id", "name", "type", "lat", "long", "co2", "temp",
          "occupancyRate", "wagonsOccupancyList", "floorsOccupancyList"]
SIMPLE_TYPES = ["Gare", "Restaurant", "Hopital"]
CENTER = (48.8566, 2.3522)


def _num(value: float, decimal_comma: bool) -> str:
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return text.replace(".", ",") if decimal_comma else text


def _occupancy_list(n: int, rng: random.Random) -> str:
    return "[" + ", ".join(str(rng.randint(0, 100)) for _ in range(n)) + "]"


def build_row(i: int, rng: random.Random, decimal_comma: bool = True) -> list:
    kind = rng.choice(["Building", "Vehicle"] + SIMPLE_TYPES)
    lat = CENTER[0] + rng.uniform(-0.05, 0.05)
    lon = CENTER[1] + rng.uniform(-0.08, 0.08)
    co2 = str(rng.randint(380, 1200))
    temp = _num(rng.uniform(17, 26), decimal_comma)
    rate, wagons, floors = "", "", ""

    if kind == "Vehicle":
        wagons = _occupancy_list(rng.randint(2, 8), rng)
        name = f"Train {1000 + i}"
    elif kind == "Building":
        floors = _occupancy_list(rng.randint(1, 12), rng)
        name = f"Building {i}"
    else:
        rate = str(rng.randint(0, 100))
        name = f"{kind} {i}"

    return [str(i), name, kind, _num(lat, decimal_comma), _num(lon, decimal_comma),
            co2, temp, rate, wagons, floors]


def build_feed(n: int = 20, seed: int = 42, decimal_comma: bool = True) -> str:
    rng = random.Random(seed)
    lines = [";".join(HEADER)]
    for i in range(1, n + 1):
        lines.append(";".join(build_row(i, rng, decimal_comma)))
    return "\n".join(lines) + "\n"


def send_feed(text: str):
    try:
        response = requests.post(API_URL, data=text.encode("utf-8"),
                                 headers={"Content-Type": "text/plain; charset=utf-8"}, timeout=5)
        response.raise_for_status()
        print(f"[{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}] Feed sent.")
        print(f"Server response: {response.json()}\n")
    except requests.exceptions.RequestException as e:
        print(f"[{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}] Failed to send feed: {e}\n")


def main():
    p = argparse.ArgumentParser(description="Generate a random sensor feed.")
    p.add_argument("-n", "--rows", type=int, default=20)
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--decimal-point", action="store_true", help="Write 48.85 instead of 48,85.")
    p.add_argument("--output", default=OUTPUT_PATH)
    p.add_argument("--send", action="store_true", help=f"POST the feed to {API_URL}")
    args = p.parse_args()

    text = build_feed(args.rows, args.seed, decimal_comma=not args.decimal_point)
    os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
    with open(args.output, "w", encoding="utf-8") as f:
        f.write(text)
    print(f"Wrote {args.rows} rows to {args.output}")

    if args.send:
        send_feed(text)


if __name__ == "__main__":
    main()
