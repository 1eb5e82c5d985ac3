"""
Strata: an embeddable object-model runtime.

Front-ends hand the runtime structured class and role declarations; the
runtime linearizes them, lays out instance slots, builds method dispatch
tables and drives construction and destruction.

| Layer                        | Purpose                                        |
<----------------------------- + ---------------------------------------------->
| **Declaration store**        | Versioned classes and roles, by name           |
| **Linearizer**               | Parent chain, roles, slots, method tables      |
| **Instance layout**          | Ordered slots, shared per-class cells          |
| **Method resolution**        | Dispatch lists with next-method cursors        |
| **Construction/destruction** | ADJUST root-first, DESTRUCT child-first        |
| **Analysis**                 | NetworkX hierarchy graph, explain, visualize   |
| **Registry snapshots**       | JSON export, hash, diff, signed logbook        |
"""

from . import core as _core
from . import layout as _layout
from . import store as _store
from . import dispatch as _dispatch
from . import linearizer as _linearizer
from . import lifecycle as _lifecycle
from . import registry as _registry
from . import meta as _meta
from . import analysis as _analysis
from . import snapshot as _snapshot
from . import crypto as _crypto
from .cli import load_script, main, parse_args, run_repl
from ..constants import KEY_FILE, LOGBOOK_FILE, PUB_FILE

from .core import *
from .layout import *
from .store import *
from .dispatch import *
from .linearizer import *
from .lifecycle import *
from .registry import *
from .meta import *
from .analysis import *
from .snapshot import *
from .crypto import *

__all__ = []
for module in (
    _core,
    _layout,
    _store,
    _dispatch,
    _linearizer,
    _lifecycle,
    _registry,
    _meta,
    _analysis,
    _snapshot,
    _crypto,
):
    __all__.extend(getattr(module, "__all__", []))
__all__ += ["load_script", "main", "parse_args", "run_repl", "KEY_FILE", "LOGBOOK_FILE", "PUB_FILE"]
__all__ = list(dict.fromkeys(__all__))
