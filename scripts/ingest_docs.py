from __future__ import annotations

import argparse
from pathlib import Path
import sys

import httpx

from shuguridan.domain.versions import VERSION_ORDER


_SUFFIXES = {".md", ".txt"}
# Matches the server-side limit on /api/ingest/batch.
_MAX_BATCH = 100


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Ingest a directory of markdown/text files into a C++ version corpus."
    )
    parser.add_argument("directory", type=Path, help="Directory scanned recursively for .md/.txt files")
    parser.add_argument("--version", required=True, choices=VERSION_ORDER, help="Target version id, e.g. cpp17")
    parser.add_argument("--base-url", default="http://localhost:8000", help="API base URL")
    parser.add_argument(
        "--category",
        default="language",
        choices=("language", "library", "compiler"),
        help="Metadata category stored with each document",
    )
    parser.add_argument("--batch-size", type=int, default=20, help="Documents per batch request")
    parser.add_argument("--timeout", type=float, default=300.0, help="Per-request timeout in seconds")
    return parser


def _collect(directory: Path, version: str, category: str) -> list[dict]:
    documents = []
    for path in sorted(directory.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in _SUFFIXES:
            continue
        content = path.read_text(encoding="utf-8", errors="replace").strip()
        if not content:
            continue
        documents.append(
            {
                "versionId": version,
                "title": path.stem,
                "content": content,
                "metadata": {"category": category, "section": str(path.relative_to(directory).parent)},
            }
        )
    return documents


def _run(args: argparse.Namespace) -> int:
    if not args.directory.is_dir():
        print(f"Not a directory: {args.directory}", file=sys.stderr)
        return 2
    documents = _collect(args.directory, args.version, args.category)
    if not documents:
        print("No .md/.txt files found.", file=sys.stderr)
        return 1

    batch_size = max(1, min(args.batch_size, _MAX_BATCH))
    succeeded = 0
    failed = 0
    with httpx.Client(base_url=args.base_url, timeout=args.timeout) as client:
        for start in range(0, len(documents), batch_size):
            batch = documents[start : start + batch_size]
            response = client.post("/api/ingest/batch", json={"documents": batch})
            if response.status_code >= 400:
                error = response.json().get("error", {})
                print(f"batch {start // batch_size + 1} rejected: {error.get('code')} {error.get('message')}", file=sys.stderr)
                return 1
            data = response.json()["data"]
            succeeded += data["successful"]
            failed += data["failed"]
            for item in data["results"]["failed"]:
                print(f"- failed: {item['input']['title']}: {item['error']}", file=sys.stderr)
            print(f"batch {start // batch_size + 1}: {data['successful']} ok, {data['failed']} failed")

    print(f"ingested={succeeded} failed={failed} version={args.version}")
    return 0 if failed == 0 else 1


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return _run(args)
    except httpx.HTTPError as exc:
        print(f"HTTP_ERROR: {exc}", file=sys.stderr)
        return 3


if __name__ == "__main__":
    raise SystemExit(main())
