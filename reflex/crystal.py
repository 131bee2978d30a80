"""
REFLEX — Memory Crystal (atom log owner)
The caller side of recall. Owns the append-only atom log and the turn
counter, and wires the log to the graph and the recall engine.

Usage:
    crystal = MemoryCrystal(graph=graph, extractor=ConceptExtractor())
    crystal.begin_turn()
    user = crystal.create_atom(AtomType.USER_MESSAGE, "How do I write a file in Rust?")
    result = crystal.recall()          # ranked + reactivated
    thought = crystal.create_atom(AtomType.CONSCIOUS_THOUGHT, answer_text, role="model")
    crystal.link(user, thought)        # teach the graph
"""

import threading
from typing import Callable, Optional

from .models import AtomType, MemoryAtom, RecallResult
from .decay  import decay
from .srg    import ConceptAssociationGraph
from .recall import RecallEngine


class MemoryCrystal:
    """
    Threading model:
      - self._lock guards every mutation of the log (append, reactivate,
        decay pass) so atoms added from a background thread never race
        with a reactivation on the calling thread.
      - recall() scores a snapshot of the log taken under the lock; the
        engine itself never mutates atoms.
    """

    def __init__(
        self,
        graph: Optional[ConceptAssociationGraph] = None,
        extractor: Optional[Callable[[str], list]] = None,
        engine: Optional[RecallEngine] = None,
    ):
        self.graph     = graph if graph is not None else ConceptAssociationGraph()
        self.extractor = extractor
        self.engine    = engine if engine is not None else RecallEngine(graph=self.graph)

        self.atoms: list = []
        self.turn_number = 0
        self._lock = threading.Lock()

    # Log

    def begin_turn(self) -> int:
        """A turn is one user message. Returns the new turn number."""
        with self._lock:
            self.turn_number += 1
            return self.turn_number

    def advance_turn(self) -> int:
        """
        Start a new turn: bump the counter, then run the decay pass over the
        log at the new turn. This is what a chat loop calls per user message.
        """
        turn = self.begin_turn()
        self.apply_activation_decay(turn)
        return turn

    def create_atom(self, atom_type: AtomType, text: str, role: Optional[str] = None,
                    concepts: Optional[list] = None) -> MemoryAtom:
        """
        Build an atom stamped with the current turn and append it.
        Concepts are extracted from text when not supplied.
        """
        if concepts is None:
            concepts = self.extractor(text) if self.extractor else []
        if role is None:
            role = "user" if atom_type == AtomType.USER_MESSAGE else "model"
        atom = MemoryAtom(
            type=atom_type, text=text, concepts=concepts, role=role,
            turn=self.turn_number, last_activated_turn=self.turn_number,
        )
        return self.add_atom(atom)

    def add_atom(self, atom: MemoryAtom) -> MemoryAtom:
        with self._lock:
            self.atoms.append(atom)
        return atom

    def get(self, atom_uuid: str) -> Optional[MemoryAtom]:
        with self._lock:
            snapshot = list(self.atoms)
        for atom in snapshot:
            if atom.uuid == atom_uuid:
                return atom
        return None

    def link(self, source: MemoryAtom, target: MemoryAtom):
        """Teach the graph that target followed source."""
        self.graph.train_on_transition(source, target)

    # Recall

    def recall(self, reactivate: bool = True) -> RecallResult:
        """
        Rank the log at the current turn. Every recalled atom is reactivated
        (score 1.0, last activated = now) unless reactivate is False.
        """
        with self._lock:
            snapshot = list(self.atoms)
            turn     = self.turn_number
        result = self.engine.recall(snapshot, turn)
        if reactivate and not result.is_empty:
            self.reactivate([a.uuid for a in result.all_atoms()], turn)
        return result

    def reactivate(self, uuids: list, turn: Optional[int] = None) -> int:
        """Reset activation of the given atoms. Returns how many were found."""
        turn   = self.turn_number if turn is None else turn
        wanted = set(uuids)
        count  = 0
        with self._lock:
            for atom in self.atoms:
                if atom.uuid in wanted:
                    atom.reactivate(turn)
                    count += 1
        return count

    def apply_activation_decay(self, current_turn: Optional[int] = None):
        """
        Persist decay into the log itself, e.g. at the end of a turn.
        Scores only go down and stop at the floor.
        """
        turn = self.turn_number if current_turn is None else current_turn
        with self._lock:
            for atom in self.atoms:
                atom.activation_score = decay(
                    atom.activation_score, turn - atom.last_activated_turn
                )

    # Search

    def search(self, keywords: list) -> list:
        """Atoms whose text contains ALL keywords, case-insensitive, in log order."""
        needles = [k.lower().strip() for k in keywords if k and k.strip()]
        if not needles:
            return []
        with self._lock:
            snapshot = list(self.atoms)
        return [a for a in snapshot if all(n in a.text.lower() for n in needles)]

    # Sessions

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "turn":  self.turn_number,
                "atoms": [a.to_dict() for a in self.atoms],
            }

    def load_dict(self, data: dict):
        """Replace the log with a saved session."""
        atoms = [MemoryAtom.from_dict(d) for d in data.get("atoms", [])]
        with self._lock:
            self.atoms       = atoms
            self.turn_number = data.get("turn", sum(
                1 for a in atoms if a.type == AtomType.USER_MESSAGE
            ))

    # Stats

    def stats(self) -> dict:
        """Summary stats for the current session."""
        with self._lock:
            snapshot = list(self.atoms)
        type_counts = {}
        for a in snapshot:
            t = a.type.value
            type_counts[t] = type_counts.get(t, 0) + 1

        return {
            "turn":           self.turn_number,
            "total_atoms":    len(snapshot),
            "by_type":        type_counts,
            "avg_activation": round(
                sum(a.activation_score for a in snapshot) / len(snapshot), 3
            ) if snapshot else 0,
            "graph_nodes":    self.graph.node_count(),
            "graph_edges":    self.graph.edge_count(),
        }
