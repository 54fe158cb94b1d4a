"""
CLI to select budget-limited context from text files and print it.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from doccontext.core import ContextEngine
from doccontext.storage.models import Document
from doccontext.utils.logger import logger


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Select context for a query from text files.")
    parser.add_argument("query", type=str, help="The query to select context for.")
    parser.add_argument("files", nargs="+", help="Plain-text files to search.")
    parser.add_argument("--model", type=str, default="gpt-4o", help="Target model id (sets the token budget).")
    parser.add_argument(
        "--keyword-only", action="store_true", help="Skip the embedding model and use keyword retrieval."
    )
    return parser.parse_args(argv)


async def run(args) -> int:
    engine = ContextEngine(keyword_only=args.keyword_only)

    documents = []
    for i, name in enumerate(args.files):
        path = Path(name)
        if not path.is_file():
            logger.error(f"File not found: {path}")
            return 1
        document = Document(id=f"doc_{i}", name=path.name, raw_text=path.read_text(encoding="utf-8", errors="replace"))
        await engine.ingest(document)
        documents.append(document)

    selection = await engine.select_context(args.query, documents, args.model)
    if selection.warning:
        print(selection.warning, file=sys.stderr)
    print(
        f"method={selection.method.value if selection.method else 'none'} "
        f"tokens={selection.total_tokens}/{selection.token_budget}",
        file=sys.stderr,
    )
    sys.stdout.write(engine.build_context_string(selection))
    return 0


def main(argv=None) -> int:
    return asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
