"""Lightweight CLI helpers for inspecting persisted interviews."""
from __future__ import annotations

import argparse
import json
from typing import Optional, Sequence

from storage.interviews import get_interview, list_interviews


def tail_interviews(limit: int = 20) -> None:
    for record in list_interviews(limit):
        print(
            f"[{record.ended_at}] {record.id} role={record.role} "
            f"-> {record.recommendation}/{record.score} key_points={len(record.key_points)}"
        )


def show_interview(interview_id: str) -> None:
    record = get_interview(interview_id)
    print(json.dumps(record.model_dump(), indent=2, default=str))


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tail-interviews", type=int, help="Show the latest finished interviews")
    parser.add_argument("--show", help="Print one persisted interview as JSON")
    args = parser.parse_args(argv)

    if args.tail_interviews:
        tail_interviews(args.tail_interviews)
    if args.show:
        show_interview(args.show)


if __name__ == "__main__":
    main()
