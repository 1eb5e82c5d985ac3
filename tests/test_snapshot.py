import json

import pytest

from strata.declarations import ClassDecl, FieldDecl, MethodDecl
from strata.runtime import snapshot
from strata.runtime.registry import ObjectRuntime


def speak(ctx):
    return "..."


def build_runtime(extra_method=False):
    rt = ObjectRuntime()
    methods = [MethodDecl("speak", (), speak)]
    if extra_method:
        methods.append(MethodDecl("sleep", (), speak))
    rt.register_class(
        ClassDecl("Animal", fields=(FieldDecl("name", param="required"),), methods=tuple(methods))
    )
    rt.register_class(ClassDecl("Dog", parent="Animal"), defer=True)
    return rt


def test_document_contains_declarations_and_linearized_classes():
    doc = snapshot.build_registry_document(build_runtime())

    assert doc["strata_version"] == "1.0"
    assert [d["name"] for d in doc["declarations"]] == ["Animal", "Dog"]
    # deferred classes are linearized for the export
    assert [c["name"] for c in doc["classes"]] == ["Animal", "Dog"]
    assert doc["errors"] == {}


def test_document_collects_linearization_errors():
    rt = ObjectRuntime()
    rt.register_class(ClassDecl("Orphan", parent="Ghost"), defer=True)

    doc = snapshot.build_registry_document(rt)

    assert doc["classes"] == []
    assert doc["errors"]["Orphan"].startswith("UnknownClass")


def test_hash_ignores_timestamp():
    doc_a = snapshot.build_registry_document(build_runtime())
    doc_b = snapshot.build_registry_document(build_runtime())
    doc_b["timestamp"] = "1970-01-01T00:00:00Z"

    assert snapshot.hash_registry_document(doc_a) == snapshot.hash_registry_document(doc_b)
    assert "timestamp" not in snapshot.canonicalize_document(doc_a)


def test_diff_shows_changed_methods():
    doc_a = snapshot.build_registry_document(build_runtime())
    doc_b = snapshot.build_registry_document(build_runtime(extra_method=True))

    lines = snapshot.diff_registry_documents(doc_a, doc_b, "old", "new")

    assert lines[0] == "--- old"
    assert lines[1] == "+++ new"
    assert any(line.startswith("+") and '"sleep"' in line for line in lines)
    assert snapshot.diff_registry_documents(doc_a, doc_a) == []


def test_write_and_load_round_trip(tmp_path, capsys):
    target = tmp_path / "registry.json"

    doc = snapshot.export_registry(build_runtime(), target)
    loaded = snapshot.load_registry_document(target)

    assert loaded == json.loads(json.dumps(doc))
    assert "Registry document exported" in capsys.readouterr().out


def test_load_rejects_foreign_documents(tmp_path):
    target = tmp_path / "other.json"
    target.write_text(json.dumps({"hello": "world"}))

    with pytest.raises(ValueError):
        snapshot.load_registry_document(target)


def test_diff_registry_files_reports_identical(tmp_path, capsys):
    a = tmp_path / "a.json"
    b = tmp_path / "b.json"
    snapshot.export_registry(build_runtime(), a)
    snapshot.export_registry(build_runtime(), b)
    capsys.readouterr()

    assert snapshot.diff_registry_files(a, b) == []
    assert "Registries are identical." in capsys.readouterr().out


def test_diff_registry_files_labels_path_arguments(tmp_path, capsys):
    a = tmp_path / "a.json"
    b = tmp_path / "b.json"
    snapshot.export_registry(build_runtime(), a)
    snapshot.export_registry(build_runtime(extra_method=True), b)
    capsys.readouterr()

    lines = snapshot.diff_registry_files(a, b)

    assert lines[:2] == [f"--- {a}", f"+++ {b}"]
    assert f"--- {a}" in capsys.readouterr().out


def test_record_snapshot_appends_signed_entry(tmp_path, capsys):
    rt = build_runtime()
    registry_file = tmp_path / "registry.json"
    logbook = tmp_path / "logbook.jsonl"
    snapshot.export_registry(rt, registry_file)

    entry = snapshot.record_snapshot(
        registry_file, rt, logbook_file=logbook, signer=lambda sha: f"sig:{sha[:8]}"
    )

    assert entry["signature"] == f"sig:{entry['hash'][:8]}"
    assert entry["classes"] == ["Animal", "Dog"]
    assert entry["first_event"] == "register:class:Animal@0"
    assert entry["journal_length"] == len(rt.journal)
    assert snapshot.read_logbook(logbook) == [entry]


def test_record_snapshot_uses_key_files(tmp_path, monkeypatch):
    calls = []

    def fake_sign(sha, key_file, pub_file):
        calls.append((key_file, pub_file))
        return "signed"

    monkeypatch.setattr(snapshot._crypto, "sign_hash", fake_sign)
    registry_file = tmp_path / "registry.json"
    snapshot.export_registry(build_runtime(), registry_file)

    entry = snapshot.record_snapshot(
        registry_file,
        logbook_file=tmp_path / "log.jsonl",
        key_file="k.pem",
        pub_file="k.pub.pem",
    )

    assert entry["signature"] == "signed"
    assert entry["first_event"] is None
    assert calls == [("k.pem", "k.pub.pem")]


def test_show_logbook(tmp_path, capsys):
    logbook = tmp_path / "logbook.jsonl"

    assert snapshot.show_logbook(logbook) == []
    assert "No logbook yet." in capsys.readouterr().out

    rt = build_runtime()
    registry_file = tmp_path / "registry.json"
    snapshot.export_registry(rt, registry_file)
    snapshot.record_snapshot(registry_file, rt, logbook_file=logbook, signer=lambda sha: "s")
    capsys.readouterr()

    entries = snapshot.show_logbook(logbook)

    out = capsys.readouterr().out
    assert len(entries) == 1
    assert "classes: Animal, Dog" in out
    assert "journal: register:class:Animal@0" in out
