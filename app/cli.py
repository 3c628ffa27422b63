"""
Command line entry point.

    automat serve [--host H] [--port P]
    automat build <project-file> [--root DIR] [--capture] [--no-persist]
    automat list

`build` exits 0 when every checkout and step succeeded, 1 when the build ran
but failed, and 2 when no record could be produced.
"""
import argparse
import sys
from typing import Optional, Sequence

from app.core.config import AUTOMAT_ROOT, HOST, LOG_LEVEL, PERSIST_RECORDS, PORT
from app.core.errors import AutomatError
from app.models.build_record import BuildStatus
from app.models.project import Project
from app.pipeline.builder import BuildPipeline
from app.services.project_store import ProjectStore
from app.services.record_writer import RecordWriter
from app.utils.logging_config import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="automat", description="Minimal continuous integration build server")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=HOST)
    serve.add_argument("--port", type=int, default=PORT)

    build = sub.add_parser("build", help="Build a project file once and print its record")
    build.add_argument("project_file")
    build.add_argument("--data-root", default=AUTOMAT_ROOT, help="Directory holding builds/ and records/")
    build.add_argument("--root", help="Build root (default: <data-root>/builds/<name>)")
    build.add_argument("--capture", action="store_true", help="Capture step output into the record")
    build.add_argument("--no-persist", action="store_true", help="Do not write the record under <data-root>/records")

    listing = sub.add_parser("list", help="List stored projects")
    listing.add_argument("--data-root", default=AUTOMAT_ROOT)
    return parser


def _build(args: argparse.Namespace) -> int:
    try:
        project = Project.load(args.project_file)
    except (OSError, AutomatError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    store_root = args.root or ProjectStore(args.data_root).build_root(project.name)
    # stdout carries only the record JSON; step output goes to stderr
    pipeline = BuildPipeline(
        sink=None if args.capture else sys.stderr,
        capture_output=args.capture,
    )
    try:
        record = pipeline.run(project, store_root)
    except AutomatError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if PERSIST_RECORDS and not args.no_persist:
        RecordWriter(args.data_root).write_record(record)

    print(record.model_dump_json(indent=2))
    return 0 if record.status == BuildStatus.OK else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    from_command_line = argv is None
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    if args.command == "serve":
        from main import serve

        serve(host=args.host, port=args.port)
        return 0

    # Embedded callers (tests, other tools) keep their own logging setup
    if from_command_line:
        setup_logging(level=LOG_LEVEL)

    if args.command == "build":
        return _build(args)

    if args.command == "list":
        store = ProjectStore(args.data_root)
        store.load_all()
        for name in store.list_names():
            print(name)
        return 0

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
