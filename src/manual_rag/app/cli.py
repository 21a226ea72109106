"""Interactive command-line client.

Loads the corpus store once, then answers questions typed at the prompt.
``/reload`` rebuilds the corpus snapshot from the store and ``/quit`` exits.
"""

from __future__ import annotations

import argparse
import logging
from typing import Callable, TextIO
import sys

from manual_rag.app.container import build_container
from manual_rag.common.errors import NotInitializedError
from manual_rag.common.logging_utils import configure_logging
from manual_rag.config import GlobalConfig
from manual_rag.pipelines.rag_pipeline import QueryResult

logger = logging.getLogger(__name__)

BANNER = """==============================================
  MANUAL-RAG  |  Local search over manuals
  Commands: /reload  /quit
=============================================="""


def render_answer(result: QueryResult, show_hits: bool = False) -> str:
    """Format a pipeline result for the terminal."""
    answer = result.answer
    lines = ["", "--- ANSWER ---"]
    if answer.intro:
        lines += ["", f"> {answer.intro}"]
    if answer.steps:
        lines += ["", "Steps:"]
        lines += [f"  {i}. {step}" for i, step in enumerate(answer.steps, start=1)]
    if answer.extra:
        lines += ["", f"Note: {answer.extra}"]
    if answer.sources:
        lines += ["", "Sources: " + " | ".join(answer.sources)]
    if show_hits:
        lines += ["", f"[debug] answer={result.answer_origin.value} rerank="
                      f"{result.rerank_origin.value if result.rerank_origin else '-'}"]
        for c in result.candidates:
            snippet = " ".join(c.text[:160].split())
            lines.append(f"[debug] id={c.id} score={c.score:.4f} source={c.source} {snippet}")
    lines.append("----------------")
    return "\n".join(lines)


def run_repl(
        container,
        read: Callable[[str], str] = input,
        out: TextIO | None = None,
        show_hits: bool = False,
    ) -> int:
    """Question loop. Returns the process exit code."""
    out = out or sys.stdout
    print(BANNER, file=out)

    try:
        count = container.snapshots.reload()
        print(f"Index loaded with {count} chunks.", file=out)
    except (OSError, ValueError) as e:
        print(f"Failed to load index: {e}", file=out)
        print("Run the ingestion script first.", file=out)
        return 1

    while True:
        try:
            q = read("\nQuestion > ").strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not q:
            continue
        if q == "/quit":
            break
        if q == "/reload":
            try:
                count = container.snapshots.reload()
                print(f"Reloaded. Chunks: {count}", file=out)
            except (OSError, ValueError) as e:
                print(f"Reload failed: {e}", file=out)
            continue

        try:
            result = container.pipeline.run(q)
        except NotInitializedError as e:
            print(f"{e}", file=out)
            continue
        print(render_answer(result, show_hits=show_hits), file=out)

    print("\nBye.", file=out)
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ask questions about the ingested manuals")

    parser.add_argument(
        "--config-file",
        "-c",
        required=False,
        type=str,
        default=None,
        help="Path to the YAML configuration file. Defaults are used when omitted.",
    )

    parser.add_argument(
        "--show-hits",
        action="store_true",
        help="Print the final candidates and which paths produced the answer.",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    cfg = GlobalConfig.load(args.config_file) if args.config_file else GlobalConfig()
    configure_logging(cfg.log_level)
    return run_repl(build_container(cfg), show_hits=args.show_hits)


if __name__ == "__main__":
    raise SystemExit(main())
