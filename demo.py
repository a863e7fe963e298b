#!/usr/bin/env python3
"""
Candidate shortlisting demo against a running recruitment backend.

Usage:
    python demo.py                     # interactive REPL
    python demo.py --scripted          # run predefined job descriptions
    python demo.py --method vector --top-k 5
"""

import argparse
import asyncio
import logging

from dotenv import load_dotenv

load_dotenv()

from shortlister.api_client import ResumeApiClient
from shortlister.candidates import format_candidate_table
from shortlister.config import Settings
from shortlister.diagnostics import Diagnostics
from shortlister.errors import ShortlisterError
from shortlister.shortlisting import ShortlistingResult, ShortlistingService


def _print_result(result: ShortlistingResult) -> None:
    if result.analysis and result.analysis.enhanced_query:
        print(f"  Enhanced: \"{result.analysis.enhanced_query}\"")
    if result.analysis and result.analysis.keywords:
        print(f"  Keywords: {', '.join(result.analysis.keywords)}")
    print()
    print(format_candidate_table(result.candidates))
    print(
        f"  {len(result.candidates)} of {result.total_results} candidates "
        f"via {result.method} in {result.processing_time * 1000:.0f}ms"
    )
    if result.summary:
        print(f"\n  {result.summary}")


async def _shortlist(service: ShortlistingService, query: str, method: str, top_k: int) -> None:
    try:
        result = await service.shortlist_candidates(query, method=method, top_k=top_k)
    except ShortlisterError as e:
        print(f"  Error: {e}")
        return
    _print_result(result)


async def run_interactive(service: ShortlistingService, method: str, top_k: int) -> None:
    print("\nDescribe the role you are hiring for (or 'quit' to exit):\n")

    while True:
        try:
            query = (await asyncio.to_thread(input, "shortlist> ")).strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not query or query.lower() in ("quit", "exit", "q"):
            break

        await _shortlist(service, query, method, top_k)
        print()


SCRIPTED_QUERIES = [
    "Senior Python developer with Django and PostgreSQL",
    "Machine learning engineer with PyTorch and MLOps experience",
    "Frontend engineer, React and TypeScript, 3+ years",
    "DevOps lead with Kubernetes and AWS",
]


async def run_scripted(service: ShortlistingService, method: str, top_k: int) -> None:
    for i, query in enumerate(SCRIPTED_QUERIES, 1):
        print(f"\n{'═' * 60}")
        print(f"  Job {i}: \"{query}\"")
        print(f"{'═' * 60}")

        await _shortlist(service, query, method, top_k)


async def main_async(args: argparse.Namespace) -> None:
    settings = Settings.from_env()
    diagnostics = Diagnostics()

    async with ResumeApiClient(settings) as client:
        print(f"Connecting to {settings.api_root}...")
        if not await client.health_check():
            print("Backend is not reachable; searches will fail until it is up.")

        service = ShortlistingService(client, diagnostics=diagnostics)
        if args.scripted:
            await run_scripted(service, args.method, args.top_k)
        else:
            await run_interactive(service, args.method, args.top_k)

    summary = diagnostics.summary()
    if summary:
        degraded = ", ".join(f"{kind}={count}" for kind, count in summary.items())
        print(f"\nDegraded operations this run: {degraded}")


def main():
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--scripted", action="store_true")
    parser.add_argument("--method", choices=["vector", "chat", "hybrid"], default="hybrid")
    parser.add_argument("--top-k", type=int, default=10)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    asyncio.run(main_async(args))


if __name__ == "__main__":
    main()
