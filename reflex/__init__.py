"""
REFLEX — Resonant Memory Recall
===============================
Decides which past memory atoms of a long conversation are worth
injecting into the current turn, using a learned concept-association
graph, Fibonacci activation decay, and a two-pool ranking.

Quick start:
    - Run python main.py

"""

from .models    import AtomType, MemoryAtom, ConceptKey, RecallResult
from .decay     import decay, fibonacci
from .kv_store  import KeyValueStore, SQLiteKVStore
from .scheduler import DebouncedWriter
from .srg       import ConceptAssociationGraph
from .concepts  import ConceptExtractor, parse_concepts
from .recall    import RecallEngine, build_prompt_block
from .crystal   import MemoryCrystal

__version__ = "1.0.0"
__all__ = [
    "AtomType",
    "MemoryAtom",
    "ConceptKey",
    "RecallResult",
    "decay",
    "fibonacci",
    "KeyValueStore",
    "SQLiteKVStore",
    "DebouncedWriter",
    "ConceptAssociationGraph",
    "ConceptExtractor",
    "parse_concepts",
    "RecallEngine",
    "build_prompt_block",
    "MemoryCrystal",
]
