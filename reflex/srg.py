"""
REFLEX — Concept Association Graph (SRG)
Learns which concepts tend to follow which, across ordered pairs of atoms.

Nodes  = ConceptKey(category, concept).
Edges  = directed, integer "weight" = number of times the target concept
         was observed following the source concept.

Weights only ever go up. The graph lives for the whole process and is
persisted as a single snapshot through an injected KeyValueStore, written
back lazily through a DebouncedWriter.
"""

import json
import logging
import threading
from typing import Optional

import networkx as nx

from .models    import AtomType, ConceptKey, MemoryAtom
from .kv_store  import KeyValueStore
from .scheduler import DebouncedWriter, DEFAULT_DELAY_SECONDS

logger = logging.getLogger(__name__)


SNAPSHOT_KEY     = "srg:main"
SNAPSHOT_VERSION = 1
DEFAULT_TOP_K    = 10


# Snapshot (de)serialization

def as_key(key) -> ConceptKey:
    """Coerce a (category, concept) pair into a ConceptKey with an AtomType category."""
    category, concept = key
    return ConceptKey(AtomType(category), concept)


def serialize_snapshot(snapshot: dict) -> str:
    """
    {ConceptKey: {ConceptKey: int}} -> JSON text.
    Keys are written as explicit (category, concept) fields, never joined.
    """
    nodes = []
    for source, targets in snapshot.items():
        nodes.append({
            "category": AtomType(source.category).value,
            "concept":  source.concept,
            "targets": [
                {
                    "category": AtomType(target.category).value,
                    "concept":  target.concept,
                    "weight":   int(weight),
                }
                for target, weight in targets.items()
            ],
        })
    return json.dumps({"version": SNAPSHOT_VERSION, "nodes": nodes})


def deserialize_snapshot(raw: str) -> dict:
    data = json.loads(raw)
    snapshot: dict = {}
    for node in data.get("nodes", []):
        source  = ConceptKey(AtomType(node["category"]), node["concept"])
        targets = snapshot.setdefault(source, {})
        for t in node.get("targets", []):
            weight = int(t["weight"])
            if weight <= 0:
                continue
            targets[ConceptKey(AtomType(t["category"]), t["concept"])] = weight
    return snapshot


def _merge(base: dict, extra: dict) -> dict:
    """Sum the weights of extra into a copy of base."""
    merged = {source: dict(targets) for source, targets in base.items()}
    for source, targets in extra.items():
        into = merged.setdefault(source, {})
        for target, weight in targets.items():
            into[target] = into.get(target, 0) + weight
    return merged


# Graph

class ConceptAssociationGraph:
    """
    Usage:
        graph = ConceptAssociationGraph(store=SQLiteKVStore("reflex.db"))
        graph.train_on_transition(user_atom, thought_atom)
        graph.get_follow_up_concepts(recent_atoms, top_k=10)
        graph.close()       # flush the pending write on shutdown
    """

    def __init__(self, store: Optional[KeyValueStore] = None,
                 debounce_seconds: float = DEFAULT_DELAY_SECONDS,
                 key: str = SNAPSHOT_KEY):
        self.store  = store
        self.key    = key
        self._graph = nx.DiGraph()
        self._lock  = threading.RLock()   # single writer per graph
        self._loaded = False
        self.writer = DebouncedWriter(self.save, delay=debounce_seconds)

    # Persistence

    def load(self) -> bool:
        """
        Read the snapshot. A missing snapshot (or no store) is a cold start
        and counts as loaded. A read failure leaves the graph unloaded so
        the next call retries; anything learned meanwhile is merged on top
        of the stored weights once the read succeeds.
        Returns True if stored data was loaded.
        """
        with self._lock:
            if self._loaded:
                return self._graph.number_of_edges() > 0
            if self.store is None:
                self._loaded = True
                return False
            try:
                raw = self.store.get(self.key)
                stored = deserialize_snapshot(raw) if raw else {}
            except Exception as e:
                logger.error("Failed to load concept graph: %s", e)
                return False
            self._loaded = True
            if not stored:
                logger.info("No stored concept graph under %r, starting empty", self.key)
                return False
            self._replace(_merge(stored, self.to_snapshot()))
            logger.info("Concept graph loaded: %d nodes, %d edges",
                        self._graph.number_of_nodes(), self._graph.number_of_edges())
            return True

    def save(self):
        """
        Write the current snapshot immediately. Failures are logged.
        Never writes before a load has succeeded, so a partial in-memory
        graph cannot replace the stored one.
        """
        if self.store is None:
            return
        self.load()
        if not self._loaded:
            logger.warning("Concept graph not loaded, skipping save of %r", self.key)
            return
        with self._lock:
            payload = serialize_snapshot(self.to_snapshot())
        try:
            self.store.put(self.key, payload)
        except Exception as e:
            logger.error("Failed to save concept graph: %s", e)

    def flush(self) -> bool:
        return self.writer.flush()

    def close(self):
        self.writer.flush()
        self.writer.cancel()

    def _ensure_loaded(self):
        if not self._loaded:
            self.load()

    # Training

    def train_on_transition(self, source: MemoryAtom, target: MemoryAtom):
        """
        Every concept of source (under source.type) gets an edge to every
        concept of target (under target.type), weight += 1.
        Atoms without concepts teach nothing.
        """
        if not source.concepts or not target.concepts:
            return
        self._ensure_loaded()
        with self._lock:
            for s_key in source.concept_keys():
                for t_key in target.concept_keys():
                    if self._graph.has_edge(s_key, t_key):
                        self._graph[s_key][t_key]["weight"] += 1
                    else:
                        self._graph.add_edge(s_key, t_key, weight=1)
        self.writer.schedule()

    # Prediction

    def get_follow_up_concepts(self, atoms: list, top_k: int = DEFAULT_TOP_K) -> list:
        """
        Concepts most likely to follow the given atoms, strongest first.

        Outgoing weights from every (category, concept) key of the input are
        summed per target concept, ignoring target category. Concepts the
        input already contains are excluded. Ties keep first-seen order.
        """
        if top_k <= 0:
            return []
        self._ensure_loaded()

        associations: dict = {}   # concept -> summed weight, insertion ordered
        original:     set  = set()
        seen_keys:    set  = set()

        with self._lock:
            for atom in atoms:
                for key in atom.concept_keys():
                    original.add(key.concept)
                    if key in seen_keys:
                        continue
                    seen_keys.add(key)
                    if key not in self._graph:
                        continue
                    for follow_key, attrs in self._graph[key].items():
                        concept = follow_key.concept
                        associations[concept] = associations.get(concept, 0) + attrs["weight"]

        ranked = [(c, w) for c, w in associations.items() if c not in original]
        ranked.sort(key=lambda item: item[1], reverse=True)   # stable
        return [c for c, _ in ranked[:top_k]]

    # Inspection

    def weight(self, source: ConceptKey, target: ConceptKey) -> int:
        source, target = as_key(source), as_key(target)
        with self._lock:
            if self._graph.has_edge(source, target):
                return self._graph[source][target]["weight"]
        return 0

    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def total_weight(self) -> int:
        with self._lock:
            return sum(w for _, _, w in self._graph.edges(data="weight"))

    # Snapshots

    def to_snapshot(self) -> dict:
        """{ConceptKey: {ConceptKey: weight}} for nodes with outgoing edges."""
        with self._lock:
            snapshot = {}
            for source in self._graph.nodes:
                targets = {t: attrs["weight"] for t, attrs in self._graph[source].items()}
                if targets:
                    snapshot[source] = targets
            return snapshot

    def from_snapshot(self, snapshot: dict):
        with self._lock:
            self._replace(snapshot)
            self._loaded = True

    def _replace(self, snapshot: dict):
        graph = nx.DiGraph()
        for source, targets in snapshot.items():
            for target, weight in targets.items():
                graph.add_edge(as_key(source), as_key(target), weight=int(weight))
        self._graph = graph
