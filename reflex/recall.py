"""
REFLEX — Recall Engine
SYNC — runs before every model call.

Strategy:
  1. Not enough history (<= STM_CAPACITY atoms) -> empty result
  2. Partition: last STM_CAPACITY atoms = STM (working set), rest = LTM
  3. Decay LTM activation on scoring copies (canonical atoms untouched)
  4. Expand the query: STM concepts + follow-up concepts predicted by the SRG
  5. Score general memories and axioms as two independent pools
  6. Stable sort, take top K of each, map back to the canonical atoms
"""

import logging
from typing import Optional

from .models import AtomType, RecallResult
from .decay  import decay
from .srg    import ConceptAssociationGraph

logger = logging.getLogger(__name__)


# Recall Config

STM_CAPACITY     = 15     # most recent atoms, never recalled
LTM_RECALL_K     = 5      # general memories returned
AXIOM_RECALL_K   = 3      # axioms returned
FOLLOW_UP_K      = 10     # predicted concepts requested from the graph
FOLLOW_UP_WEIGHT = 2.0    # extra resonance per follow-up concept in an atom
AXIOM_WEIGHT     = 2.0    # resonance per STM concept shared with an axiom
REFLECTION_BOOST = 1.1    # subconscious reflections get a small edge

SNIPPET_CHARS    = 150


class RecallEngine:
    """
    Stateless ranking over an atom log owned by the caller. The only outside
    call is the read of follow-up concepts from the graph.
    """

    def __init__(
        self,
        graph: Optional[ConceptAssociationGraph] = None,
        stm_capacity: int       = STM_CAPACITY,
        ltm_recall_k: int       = LTM_RECALL_K,
        axiom_recall_k: int     = AXIOM_RECALL_K,
        follow_up_k: int        = FOLLOW_UP_K,
        follow_up_weight: float = FOLLOW_UP_WEIGHT,
        axiom_weight: float     = AXIOM_WEIGHT,
        reflection_boost: float = REFLECTION_BOOST,
    ):
        self.graph            = graph
        self.stm_capacity     = stm_capacity
        self.ltm_recall_k     = ltm_recall_k
        self.axiom_recall_k   = axiom_recall_k
        self.follow_up_k      = follow_up_k
        self.follow_up_weight = follow_up_weight
        self.axiom_weight     = axiom_weight
        self.reflection_boost = reflection_boost

    def recall(self, atoms: list, current_turn: int) -> RecallResult:
        """
        Main recall method. atoms must be in log (time) order.
        Returns at most ltm_recall_k memories and axiom_recall_k axioms,
        none of them from the STM window.
        """
        if len(atoms) <= self.stm_capacity:
            return RecallResult(stm_size=len(atoms))

        # Step 1: Partition
        stm = atoms[-self.stm_capacity:]
        ltm = atoms[:-self.stm_capacity]

        # Step 2: Decayed scoring copies
        decayed_ltm = self.decay_copies(ltm, current_turn)

        # Step 3: Query expansion
        stm_concepts = set()
        for atom in stm:
            stm_concepts.update(atom.concepts)
        follow_ups = self._follow_ups(stm)
        expanded   = stm_concepts | set(follow_ups)

        # Step 4: Score both pools
        scored_memories = self.score_memories(decayed_ltm, expanded, follow_ups)
        scored_axioms   = self.score_axioms(decayed_ltm, stm_concepts)

        # Step 5: Select and map back to the canonical atoms
        by_uuid  = {atom.uuid: atom for atom in ltm}
        memories = [by_uuid[c.uuid] for c in self._top(scored_memories, self.ltm_recall_k)]
        axioms   = [by_uuid[c.uuid] for c in self._top(scored_axioms, self.axiom_recall_k)]

        logger.debug("Recall at turn %d: %d/%d memories, %d/%d axioms, follow-ups=%s",
                     current_turn, len(memories), len(scored_memories),
                     len(axioms), len(scored_axioms), follow_ups)

        result = RecallResult(
            memories=memories,
            axioms=axioms,
            follow_up_concepts=follow_ups,
            stm_size=len(stm),
            ltm_size=len(ltm),
        )
        result.prompt_block = build_prompt_block(result)
        return result

    # Scoring

    def decay_copies(self, atoms: list, current_turn: int) -> list:
        return [
            atom.with_activation(
                decay(atom.activation_score, current_turn - atom.last_activated_turn)
            )
            for atom in atoms
        ]

    def score_memories(self, atoms: list, expanded: set, follow_ups: list) -> list:
        """
        (atom, resonance, final_score) for every non-axiom atom that resonates.
        Atoms with zero resonance are dropped, not scored zero.
        """
        follow_up_set = set(follow_ups)
        scored = []
        for atom in atoms:
            if atom.is_axiom:
                continue
            concepts  = set(atom.concepts)
            resonance = (len(concepts & expanded)
                         + self.follow_up_weight * len(concepts & follow_up_set))
            if resonance == 0:
                continue
            if atom.type == AtomType.SUBCONSCIOUS_REFLECTION:
                resonance *= self.reflection_boost
            scored.append((atom, resonance, resonance * atom.activation_score))
        return scored

    def score_axioms(self, atoms: list, stm_concepts: set) -> list:
        """
        (atom, resonance, final_score) for axioms sharing concepts with the STM.
        Only direct STM concepts count here: follow-up predictions do not.
        """
        scored = []
        for atom in atoms:
            if not atom.is_axiom:
                continue
            resonance = self.axiom_weight * len(set(atom.concepts) & stm_concepts)
            if resonance == 0:
                continue
            scored.append((atom, resonance, resonance * atom.activation_score))
        return scored

    def _top(self, scored: list, k: int) -> list:
        # sorted() is stable, so equal scores keep log order
        ranked = sorted(scored, key=lambda item: item[2], reverse=True)
        return [atom for atom, _, _ in ranked[:k]]

    def _follow_ups(self, stm: list) -> list:
        if self.graph is None:
            return []
        return self.graph.get_follow_up_concepts(stm, self.follow_up_k)


# Prompt Block

def build_prompt_block(result: RecallResult) -> str:
    """
    Compact block injected into the model prompt. Axioms come first because
    the model is asked to follow them, memories after.
    """
    if result.is_empty:
        return ""

    lines = ["<memory_context>"]
    if result.axioms:
        lines.append("  Guiding Axioms (MUST FOLLOW):")
        for atom in result.axioms:
            lines.append(f"    - {atom.text}")
    if result.memories:
        lines.append("  Relevant Memories:")
        for atom in result.memories:
            lines.append(f"    {atom.to_prompt_fragment(SNIPPET_CHARS)}")
    lines.append("</memory_context>")
    return "\n".join(lines)
