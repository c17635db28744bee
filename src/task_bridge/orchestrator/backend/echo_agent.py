"""Local stand-in for the assistant CLI used by integration tests.

Behaviour is driven by bracketed directives inside the prompt:

- ``[say:TEXT]`` prints ``TEXT`` on its own line before the final answer
- ``[sleep:SECONDS]`` sleeps after the ``say`` lines
- ``[pwd]`` prints the working directory
- ``[stderr:TEXT]`` writes ``TEXT`` to stderr
- ``[exit:CODE]`` exits with ``CODE`` instead of printing the answer

The final answer is ``done``, or a JSON envelope with ``--output-format json``.
"""

from __future__ import annotations

import argparse
import json
import os
import re
import sys
import time

_DIRECTIVE = re.compile(r"\[(say|sleep|pwd|stderr|exit)(?::([^\]]*))?\]")

ECHO_SESSION_ID = "echo-session-1"


def main(argv: list[str] | None = None) -> int:
    """Run deterministic fake assistant behaviour."""

    parser = argparse.ArgumentParser()
    parser.add_argument("-p", "--print", dest="prompt", required=True)
    parser.add_argument("--resume", default=None)
    parser.add_argument("--output-format", default="text")
    parser.add_argument("--dangerously-skip-permissions", action="store_true")
    args = parser.parse_args(argv)

    directives = _DIRECTIVE.findall(args.prompt)
    for name, value in directives:
        if name == "say":
            print(value, flush=True)
    for name, value in directives:
        if name == "pwd":
            print(os.getcwd(), flush=True)
        elif name == "sleep":
            time.sleep(float(value or "0"))
    for name, value in directives:
        if name == "stderr":
            print(value, file=sys.stderr, flush=True)
    for name, value in directives:
        if name == "exit":
            return int(value or "1")

    if args.output_format == "json":
        print(
            json.dumps(
                {
                    "type": "result",
                    "result": "done",
                    "session_id": args.resume or ECHO_SESSION_ID,
                },
            ),
            flush=True,
        )
    else:
        print("done", flush=True)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
