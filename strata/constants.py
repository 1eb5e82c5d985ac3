"""Shared constant values for the Strata runtime."""

FIELD_SCOPES = ["instance", "shared"]

METHOD_SCOPES = ["instance", "class"]

# ``common`` is accepted as a synonym for class-scoped dispatch.
METHOD_SCOPE_ALIASES = {"common": "class"}

PARAM_POLICIES = ["required-param", "optional-param-with-default", "not-a-param"]

CONTAINER_KINDS = ["scalar", "sequence"]

HOOK_KINDS = ["ADJUST", "DESTRUCT"]

CONSTRUCTOR_METHOD = "new"
ALTERNATE_ARGS_METHOD = "BUILDARGS"
RESERVED_METHODS = {CONSTRUCTOR_METHOD}

UNVERSIONED = "0"

KIND_COLORS = {
    "class": "#8BC34A",
    "abstract": "#B0BEC5",
    "role": "#FFEB3B",
    "missing": "#FF7043",
}

EDGE_STYLES = {
    "isa": "solid",
    "does": "dashed",
}

DOCUMENT_VERSION = "1.0"

LOGBOOK_FILE = "strata.logbook.jsonl"
KEY_FILE = "strata_signing_key.pem"
PUB_FILE = "strata_signing_key.pub.pem"
REPL_HISTORY_LIMIT = 10

# Oldest journal entries are dropped past this many.
JOURNAL_LIMIT = 10_000

__all__ = [
    "ALTERNATE_ARGS_METHOD",
    "CONSTRUCTOR_METHOD",
    "CONTAINER_KINDS",
    "DOCUMENT_VERSION",
    "EDGE_STYLES",
    "FIELD_SCOPES",
    "HOOK_KINDS",
    "JOURNAL_LIMIT",
    "KEY_FILE",
    "KIND_COLORS",
    "LOGBOOK_FILE",
    "METHOD_SCOPES",
    "METHOD_SCOPE_ALIASES",
    "PARAM_POLICIES",
    "PUB_FILE",
    "REPL_HISTORY_LIMIT",
    "RESERVED_METHODS",
    "UNVERSIONED",
]
