"""Command-line interface for the Strata runtime."""
from __future__ import annotations

import argparse
import code
import runpy
import sys

from ..constants import KEY_FILE, LOGBOOK_FILE, PUB_FILE, REPL_HISTORY_LIMIT
from ..errors import StrataError
from . import registry as _registry
from .analysis import (
    check_declarations,
    describe_class,
    explain_layout,
    explain_method,
    export_graphviz,
    print_hierarchy,
    visualize_hierarchy,
)
from .crypto import verify_signature
from .snapshot import (
    diff_registry_files,
    export_registry,
    hash_registry_file,
    read_logbook,
    record_snapshot,
    show_logbook,
)


def script_namespace(runtime):
    """Globals handed to declaration scripts and the REPL."""

    import strata

    namespace = {name: getattr(strata, name) for name in strata.__all__}
    namespace["runtime"] = runtime
    return namespace


def load_script(path, runtime=None):
    """Run a declaration script against ``runtime`` (the default runtime if omitted)."""

    runtime = runtime or _registry.get_runtime()
    before = len(runtime.store.names())
    runpy.run_path(str(path), init_globals=script_namespace(runtime), run_name="__strata__")
    added = len(runtime.store.names()) - before
    print(f"  ✓ Loaded {path}: {added} declaration(s) registered")
    return runtime


def _split_method_target(target):
    class_name, sep, method_name = target.rpartition(".")
    if not sep or not class_name or not method_name:
        raise ValueError("Expected Class.method")
    return class_name, method_name


def run_repl(runtime=None, history_limit=REPL_HISTORY_LIMIT):
    """Interactive Strata shell."""

    runtime = runtime or _registry.get_runtime()
    console = code.InteractiveConsole(script_namespace(runtime), filename="<strata>")
    print("Strata REPL — enter Python statements or commands (:help for help)")
    history = []
    more = False

    while True:
        try:
            line = input("   ... " if more else "strata> ")
        except EOFError:
            print()
            break

        stripped = line.strip()
        if not stripped and not more:
            continue

        if not more and stripped.startswith(":"):
            parts = stripped.split()
            cmd = parts[0]
            arg = parts[1] if len(parts) > 1 else None

            if cmd in (":quit", ":exit"):
                break
            if cmd == ":help":
                print(
                    "Commands: :help, :quit, :classes, :describe C, :layout C, "
                    ":explain C.m, :check, :journal [n], :live, :history"
                )
                print(f"History: last {history_limit} statements cached.")
                continue
            try:
                if cmd == ":classes":
                    print_hierarchy(runtime)
                elif cmd == ":describe" and arg:
                    for text in describe_class(runtime, arg):
                        print(text)
                elif cmd == ":layout" and arg:
                    for text in explain_layout(runtime, arg)["lines"]:
                        print(text)
                elif cmd == ":explain" and arg:
                    info = explain_method(runtime, *_split_method_target(arg))
                    for text in info["lines"] or ["  ✗ Method not found."]:
                        print(text)
                elif cmd == ":check":
                    problems = check_declarations(runtime)
                    for problem in problems or ["✓ All declarations linearize"]:
                        print(problem)
                elif cmd == ":journal":
                    for entry in runtime.journal.tail(int(arg) if arg else 20):
                        print("   ", entry)
                elif cmd == ":live":
                    print(", ".join(runtime.live_instances()) or "(no live instances)")
                elif cmd == ":history":
                    for index, src in enumerate(history, start=1):
                        print(f"[{index}] {src}")
                else:
                    print(f"Unknown command: {cmd}")
            except (StrataError, ValueError) as exc:
                print(f"  ✗ {type(exc).__name__}: {exc}")
            continue

        if stripped:
            history.append(line)
            if len(history) > history_limit:
                history.pop(0)
        more = console.push(line)


def parse_args(args):
    argp = argparse.ArgumentParser(description="Strata Object Runtime")

    argp.add_argument(
        "--load",
        action="append",
        metavar="SCRIPT",
        help="Run a Python declaration script against the runtime (repeatable)",
    )
    argp.add_argument(
        "--describe",
        metavar="CLASS",
        help="Show the chain, slot layout and method table of a class",
    )
    argp.add_argument(
        "--layout", metavar="CLASS", help="Show the instance slot layout of a class"
    )
    argp.add_argument(
        "--explain",
        metavar="CLASS.METHOD",
        help="Explain the dispatch list for a method",
    )
    argp.add_argument(
        "--check",
        action="store_true",
        help="Linearize every registered class and report problems",
    )
    argp.add_argument(
        "--hierarchy", action="store_true", help="Print the class hierarchy"
    )
    argp.add_argument("--journal", action="store_true", help="Print the runtime journal")
    argp.add_argument(
        "--export", metavar="OUTPUT", help="Export the registry as a JSON document"
    )
    argp.add_argument(
        "--record",
        action="store_true",
        help="Sign the exported registry document and append it to the logbook",
    )
    argp.add_argument("--hash", help="Compute the hash of a registry document")
    argp.add_argument(
        "--diff",
        nargs=2,
        metavar=("A", "B"),
        help="Compare two registry documents",
    )
    argp.add_argument(
        "--logbook", action="store_true", help="Show the Strata snapshot logbook"
    )
    argp.add_argument("--verify", help="Verify the signature for a logbook entry hash")
    argp.add_argument(
        "--visualize",
        nargs="?",
        const="",
        metavar="OUTPUT",
        help="Plot the class hierarchy with matplotlib; optionally save it",
    )
    argp.add_argument(
        "--viz",
        metavar="OUTPUT",
        help="Export a Graphviz hierarchy visualization to an SVG file",
    )
    argp.add_argument("--repl", action="store_true", help="Start an interactive REPL")
    argp.add_argument("--logbook-file", default=LOGBOOK_FILE, help="Logbook location")
    argp.add_argument("--key-file", default=KEY_FILE, help="Signing key location")
    argp.add_argument("--pub-file", default=PUB_FILE, help="Public key location")

    return argp.parse_args(args)


def main(args):
    params = parse_args(args)

    if params.diff:
        diff_registry_files(params.diff[0], params.diff[1])
        return 0
    if params.hash:
        hash_registry_file(params.hash)
        return 0
    if params.logbook:
        show_logbook(params.logbook_file)
        return 0
    if params.verify:
        signature = None
        for entry in read_logbook(params.logbook_file, limit=sys.maxsize):
            if entry["hash"] == params.verify:
                signature = entry["signature"]
        if signature is None:
            signature = input("Signature hex: ").strip()
        ok = verify_signature(params.verify, signature, params.pub_file)
        print("✓ Signature valid" if ok else "✗ Invalid signature")
        return 0 if ok else 1

    runtime = _registry.get_runtime()
    status = 0
    try:
        for script in params.load or []:
            load_script(script, runtime)

        if params.hierarchy:
            print_hierarchy(runtime)
        if params.describe:
            for line in describe_class(runtime, params.describe):
                print(line)
        if params.layout:
            for line in explain_layout(runtime, params.layout)["lines"]:
                print(line)
        if params.explain:
            info = explain_method(runtime, *_split_method_target(params.explain))
            if not info["found"]:
                print(f"  ✗ No method '{info['method']}' on {params.explain.rpartition('.')[0]}")
                status = 1
            for line in info["lines"]:
                print(line)
        if params.check:
            problems = check_declarations(runtime)
            if problems:
                for problem in problems:
                    print("  ✗", problem)
                status = 1
            else:
                print("  ✓ All declarations linearize")
    except (StrataError, ValueError) as exc:
        print(f"  ✗ {type(exc).__name__}: {exc}")
        return 1

    if params.export:
        export_registry(runtime, params.export)
        if params.record:
            record_snapshot(
                params.export,
                runtime,
                logbook_file=params.logbook_file,
                key_file=params.key_file,
                pub_file=params.pub_file,
            )
    elif params.record:
        print("  ✗ --record requires --export")
        status = 1

    if params.journal:
        print("Journal:")
        if not len(runtime.journal):
            print("    (no journal entries)")
        for entry in runtime.journal:
            print("   ", entry)

    if params.viz:
        export_graphviz(runtime, params.viz)
    if params.visualize is not None:
        visualize_hierarchy(runtime, params.visualize or None)
    if params.repl:
        run_repl(runtime)
    return status


def main_entry():  # pragma: no cover
    sys.exit(main(sys.argv[1:]))


__all__ = [
    "load_script",
    "main",
    "main_entry",
    "parse_args",
    "run_repl",
    "script_namespace",
]


if __name__ == "__main__":  # pragma: no cover
    main_entry()
