"""Registry documents: export, hashing, diffing and the signed logbook."""

from __future__ import annotations

from datetime import datetime, timezone
import difflib
import hashlib
import json

from ..constants import DOCUMENT_VERSION, KEY_FILE, LOGBOOK_FILE, PUB_FILE
from . import crypto as _crypto
from .meta import class_to_dict


def build_registry_document(runtime, *, linearize=True):
    """Describe every registered declaration and linearized class.

    With ``linearize`` set, classes are linearized first; classes that fail
    are listed under ``errors`` rather than aborting the export.
    """

    errors = {}
    if linearize:
        for name in runtime.store.names("class"):
            try:
                runtime.linearize(name)
            except Exception as exc:
                errors[name] = f"{type(exc).__name__}: {exc}"

    return {
        "strata_version": DOCUMENT_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "declarations": [decl.to_dict() for decl in runtime.store.declarations()],
        "classes": [class_to_dict(cls) for cls in runtime.registry.classes()],
        "errors": errors,
    }


def write_registry_document(doc, filename):
    with open(filename, "w", encoding="utf-8") as f:
        json.dump(doc, f, indent=2)
    print(f"  ✓ Registry document exported → {filename}")
    return doc


def export_registry(runtime, filename):
    return write_registry_document(build_registry_document(runtime), filename)


def load_registry_document(filename):
    with open(filename, "r", encoding="utf-8") as f:
        doc = json.load(f)
    if "strata_version" not in doc or "classes" not in doc:
        raise ValueError(f"{filename} is not a Strata registry document")
    return doc


def canonicalize_document(doc):
    """Drop volatile fields so equal registries hash equally."""

    canon = dict(doc)
    canon.pop("timestamp", None)
    return canon


def hash_registry_document(doc):
    canon = canonicalize_document(doc)
    payload = json.dumps(canon, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def hash_registry_file(filename):
    digest = hash_registry_document(load_registry_document(filename))
    print(f"SHA256({filename}) = {digest}")
    return digest


def diff_registry_documents(doc_a, doc_b, label_a="a", label_b="b"):
    """Return unified-diff lines between two canonicalized documents."""

    text_a = json.dumps(canonicalize_document(doc_a), indent=2, sort_keys=True).splitlines()
    text_b = json.dumps(canonicalize_document(doc_b), indent=2, sort_keys=True).splitlines()
    return list(
        difflib.unified_diff(text_a, text_b, fromfile=label_a, tofile=label_b, lineterm="")
    )


def diff_registry_files(file_a, file_b):
    lines = diff_registry_documents(
        load_registry_document(file_a),
        load_registry_document(file_b),
        str(file_a),
        str(file_b),
    )
    if not lines:
        print("Registries are identical.")
    for line in lines:
        print(line)
    return lines


def record_snapshot(
    filename,
    runtime=None,
    *,
    logbook_file=LOGBOOK_FILE,
    key_file=KEY_FILE,
    pub_file=PUB_FILE,
    signer=None,
):
    """Append a signed entry for the registry document at ``filename``."""

    doc = load_registry_document(filename)
    sha = hash_registry_document(doc)
    if signer is None:
        signature = _crypto.sign_hash(sha, key_file, pub_file)
    else:
        signature = signer(sha)

    journal = runtime.journal.entries if runtime is not None else []
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "filename": str(filename),
        "hash": sha,
        "signature": signature,
        "classes": [c["name"] for c in doc["classes"]],
        "journal_length": len(journal),
        "first_event": journal[0] if journal else None,
        "last_event": journal[-1] if journal else None,
    }
    with open(logbook_file, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry) + "\n")

    print(f"  📜 Recorded and signed snapshot → {logbook_file}")
    return entry


def read_logbook(logbook_file=LOGBOOK_FILE, limit=10):
    try:
        with open(logbook_file, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError:
        return []
    return [json.loads(line) for line in lines[-limit:] if line.strip()]


def show_logbook(logbook_file=LOGBOOK_FILE, limit=10):
    """Display recent logbook entries."""

    entries = read_logbook(logbook_file, limit)
    if not entries:
        print("No logbook yet.")
        return entries
    print(f"\nStrata Logbook — last {len(entries)} entries:")
    for e in reversed(entries):
        print(f"• {e['timestamp']}  {e['filename']}  {e['hash'][:12]}…")
        if e["classes"]:
            print(f"    classes: {', '.join(e['classes'])}")
        if e["first_event"] and e["last_event"]:
            print(f"    journal: {e['first_event']} → {e['last_event']}")
    return entries


__all__ = [
    "build_registry_document",
    "canonicalize_document",
    "diff_registry_documents",
    "diff_registry_files",
    "export_registry",
    "hash_registry_document",
    "hash_registry_file",
    "load_registry_document",
    "read_logbook",
    "record_snapshot",
    "show_logbook",
    "write_registry_document",
]
