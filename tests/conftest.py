import pytest

from reflex.models   import AtomType, MemoryAtom
from reflex.kv_store import SQLiteKVStore
from reflex.srg      import ConceptAssociationGraph


@pytest.fixture
def make_atom():
    """Factory: make_atom(concepts, type=..., **fields) -> MemoryAtom."""
    def _make(concepts=(), atom_type=AtomType.MODEL_RESPONSE, text=None, **fields):
        return MemoryAtom(
            type=atom_type,
            text=text if text is not None else " ".join(concepts) or "filler",
            concepts=concepts,
            **fields,
        )
    return _make


@pytest.fixture
def store():
    s = SQLiteKVStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def graph(store):
    # long window: tests flush explicitly instead of waiting on the timer
    g = ConceptAssociationGraph(store=store, debounce_seconds=60)
    yield g
    g.writer.cancel()


@pytest.fixture
def filler(make_atom):
    """n concept-less atoms, handy for padding a log past the STM window."""
    def _filler(n, turn=0):
        return [make_atom((), text=f"filler {i}", turn=turn) for i in range(n)]
    return _filler
