"""
REFLEX — Data Models
Memory atoms, their categories, and the composite keys of the concept graph.
"""

from dataclasses import dataclass, field, replace
from typing import Iterable, NamedTuple
from enum import Enum
import time
import uuid


ACTIVATION_FLOOR   = 0.01
ACTIVATION_CEILING = 1.0

# Atom Types

class AtomType(str, Enum):
    USER_MESSAGE            = "user_message"
    MODEL_RESPONSE          = "model_response"
    STEWARD_NOTE            = "steward_note"             # silent notes, e.g. background insights
    CONSCIOUS_THOUGHT       = "conscious_thought"
    SUBCONSCIOUS_REFLECTION = "subconscious_reflection"
    AXIOM                   = "axiom"                    # distilled principle, ranked on its own


class ConceptKey(NamedTuple):
    """Graph node: a concept as it appeared under one atom category."""
    category: AtomType
    concept:  str


def normalize_concepts(concepts: Iterable[str]) -> tuple:
    """Lowercase, strip, drop empties and duplicates. Order is preserved."""
    seen = []
    for c in concepts or ():
        if not isinstance(c, str):
            continue
        norm = " ".join(c.strip().lower().split())
        if norm and norm not in seen:
            seen.append(norm)
    return tuple(seen)


def _clamp_activation(score) -> float:
    try:
        score = float(score)
    except (TypeError, ValueError):
        return ACTIVATION_CEILING
    if score != score:   # NaN
        return ACTIVATION_CEILING
    return max(ACTIVATION_FLOOR, min(ACTIVATION_CEILING, score))


# Core Memory Atom

_IMMUTABLE_FIELDS = ("text", "concepts")


@dataclass
class MemoryAtom:
    """
    A single unit of conversational or cognitive history.

    text and concepts are frozen once the atom exists. Only the recall
    state (activation_score, last_activated_turn) may change, and only
    through reactivate() or an explicit decay pass by the log owner.
    """
    type:                AtomType = AtomType.USER_MESSAGE
    text:                str      = ""
    concepts:            tuple    = ()
    role:                str      = "user"
    turn:                int      = 0
    activation_score:    float    = 1.0
    last_activated_turn: int      = None   # defaults to turn
    uuid:                str      = ""
    timestamp:           float    = field(default_factory=time.time)

    def __post_init__(self):
        atom_type = AtomType(self.type)
        object.__setattr__(self, "type", atom_type)
        object.__setattr__(self, "concepts", normalize_concepts(self.concepts))
        if not self.uuid:
            self.uuid = f"{atom_type.value}_{uuid.uuid4().hex[:12]}"
        if self.last_activated_turn is None:
            self.last_activated_turn = self.turn

    def __setattr__(self, name, value):
        if name in _IMMUTABLE_FIELDS and name in self.__dict__:
            raise AttributeError(f"MemoryAtom.{name} is immutable after creation")
        if name == "activation_score":
            value = _clamp_activation(value)
        super().__setattr__(name, value)

    @property
    def is_axiom(self) -> bool:
        return self.type == AtomType.AXIOM

    def concept_keys(self) -> list:
        return [ConceptKey(self.type, c) for c in self.concepts]

    def with_activation(self, score: float) -> "MemoryAtom":
        """Scoring copy with a different activation. The original is untouched."""
        return replace(self, activation_score=score)

    def reactivate(self, turn: int):
        self.activation_score    = ACTIVATION_CEILING
        self.last_activated_turn = turn

    def to_dict(self) -> dict:
        return {
            "uuid":                self.uuid,
            "timestamp":           self.timestamp,
            "role":                self.role,
            "type":                self.type.value,
            "text":                self.text,
            "concepts":            list(self.concepts),
            "turn":                self.turn,
            "activation_score":    round(self.activation_score, 6),
            "last_activated_turn": self.last_activated_turn,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "MemoryAtom":
        return cls(
            uuid=d["uuid"],
            timestamp=d.get("timestamp", time.time()),
            role=d.get("role", "model"),
            type=AtomType(d["type"]),
            text=d.get("text", ""),
            concepts=d.get("concepts") or (),
            turn=d.get("turn", 0),
            activation_score=d.get("activation_score", 1.0),
            last_activated_turn=d.get("last_activated_turn"),
        )

    def to_prompt_fragment(self, max_chars: int = 150) -> str:
        """Compact representation injected into LLM prompts."""
        snippet = self.text[:max_chars]
        if len(self.text) > max_chars:
            snippet += "..."
        return f"> {self.type.value} (act: {self.activation_score:.2f}): {snippet}"


# Recall Result (RecallEngine Output)

@dataclass
class RecallResult:
    memories:           list = field(default_factory=list)   # MemoryAtoms, at most 5
    axioms:             list = field(default_factory=list)   # MemoryAtoms, at most 3
    follow_up_concepts: list = field(default_factory=list)
    stm_size:           int  = 0
    ltm_size:           int  = 0
    prompt_block:       str  = ""

    @property
    def is_empty(self) -> bool:
        return not self.memories and not self.axioms

    def all_atoms(self) -> list:
        return list(self.memories) + list(self.axioms)
