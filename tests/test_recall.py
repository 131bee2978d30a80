import pytest

from reflex.decay  import decay, fibonacci
from reflex.models import AtomType, MemoryAtom
from reflex.recall import STM_CAPACITY, RecallEngine, build_prompt_block

U = AtomType.USER_MESSAGE
M = AtomType.MODEL_RESPONSE
A = AtomType.AXIOM
S = AtomType.SUBCONSCIOUS_REFLECTION


@pytest.fixture
def engine(graph):
    return RecallEngine(graph=graph)


def _stm(make_atom, concepts, atom_type=U, turn=20):
    """A full STM window whose first atom carries the given concepts."""
    head = make_atom(concepts, atom_type=atom_type, turn=turn)
    rest = [make_atom((), text=f"stm {i}", turn=turn) for i in range(STM_CAPACITY - 1)]
    return [head] + rest


@pytest.mark.parametrize("size", [0, 1, 14, 15])
def test_short_history_returns_nothing(engine, make_atom, size):
    atoms = [make_atom(["shared"], turn=1) for _ in range(size)]
    result = engine.recall(atoms, current_turn=20)
    assert result.memories == []
    assert result.axioms == []
    assert result.is_empty
    assert result.prompt_block == ""


def test_scenario_follow_up_concept_is_double_weighted(graph, engine, make_atom, filler):
    # teach the graph that "alpha" (user) is followed by "beta"
    graph.train_on_transition(make_atom(["alpha"], atom_type=U), make_atom(["beta"]))

    target = make_atom(["alpha", "beta"], turn=10, activation_score=1.0, last_activated_turn=10)
    ltm = [target] + filler(4)
    stm = _stm(make_atom, ["alpha"])
    atoms = ltm + stm
    assert len(atoms) == 20

    decayed = engine.decay_copies(ltm, current_turn=20)
    follow_ups = graph.get_follow_up_concepts(stm, 10)
    assert follow_ups == ["beta"]

    scored = engine.score_memories(decayed, {"alpha", "beta"}, follow_ups)
    (atom, resonance, final), = scored
    assert resonance == pytest.approx(4.0)
    assert final == pytest.approx(4.0 * decay(1.0, 10))
    assert decay(1.0, 10) == pytest.approx(max(0.01, 1 - 1 / fibonacci(12)))

    result = engine.recall(atoms, current_turn=20)
    assert result.memories == [target]
    assert result.memories[0] is target
    assert result.follow_up_concepts == ["beta"]
    assert result.ltm_size == 5 and result.stm_size == 15


def test_scenario_axiom_vs_general_resonance(engine, make_atom):
    stm_concepts = {"rust", "cargo", "lifetimes"}
    axiom   = make_atom(["rust", "cargo", "lifetimes"], atom_type=A)
    general = make_atom(["rust", "cargo", "lifetimes"])

    (_, axiom_resonance, _), = engine.score_axioms([axiom, general], stm_concepts)
    (_, general_resonance, _), = engine.score_memories([axiom, general], stm_concepts, [])

    assert axiom_resonance == 6
    assert general_resonance == 3


def test_axioms_ignore_follow_up_concepts(graph, engine, make_atom, filler):
    graph.train_on_transition(make_atom(["alpha"], atom_type=U), make_atom(["beta"]))
    predicted_only = make_atom(["beta"], atom_type=A, turn=1)
    direct         = make_atom(["alpha"], atom_type=A, turn=1)
    atoms = [predicted_only, direct] + filler(3) + _stm(make_atom, ["alpha"])

    result = engine.recall(atoms, current_turn=2)
    assert result.axioms == [direct]
    assert result.memories == []


def test_subconscious_reflection_boost(engine, make_atom):
    plain      = make_atom(["x"], atom_type=M)
    reflection = make_atom(["x"], atom_type=S)
    scored = engine.score_memories([plain, reflection], {"x"}, [])
    assert [round(r, 6) for _, r, _ in scored] == [1.0, 1.1]


def test_zero_resonance_atoms_are_dropped(engine, make_atom):
    scored = engine.score_memories(
        [make_atom(["unrelated"]), make_atom([]), make_atom(["x"])], {"x"}, []
    )
    assert len(scored) == 1
    assert engine.score_axioms([make_atom([], atom_type=A)], {"x"}) == []


def test_results_are_bounded_and_never_from_stm(engine, make_atom):
    ltm = [make_atom(["shared"], turn=1) for _ in range(12)]
    ltm += [make_atom(["shared"], atom_type=A, turn=1) for _ in range(6)]
    stm = [make_atom(["shared"], atom_type=U, turn=30) for _ in range(STM_CAPACITY)]
    stm[3] = make_atom(["shared"], atom_type=A, turn=30)

    result = engine.recall(ltm + stm, current_turn=30)
    assert len(result.memories) == 5
    assert len(result.axioms) == 3
    stm_ids = {a.uuid for a in stm}
    assert not any(a.uuid in stm_ids for a in result.all_atoms())


def test_ties_keep_log_order(engine, make_atom, filler):
    first  = make_atom(["x"], turn=5)
    second = make_atom(["x"], turn=5)
    third  = make_atom(["x"], turn=5)
    atoms = [first, second] + filler(2) + [third] + _stm(make_atom, ["x"])

    result = engine.recall(atoms, current_turn=5)
    assert result.memories == [first, second, third]


def test_lower_activation_ranks_lower(engine, make_atom):
    stale = make_atom(["x"], activation_score=0.3, last_activated_turn=29)
    fresh = make_atom(["x"], activation_score=1.0, last_activated_turn=29)
    atoms = [stale, fresh] + _stm(make_atom, ["x"], turn=30)

    result = engine.recall(atoms, current_turn=30)
    assert result.memories == [fresh, stale]


def test_recall_does_not_mutate_atoms(engine, make_atom):
    ltm = [make_atom(["x"], activation_score=0.8, last_activated_turn=1) for _ in range(3)]
    atoms = ltm + _stm(make_atom, ["x"])
    before = [a.to_dict() for a in atoms]

    result = engine.recall(atoms, current_turn=40)
    assert [a.to_dict() for a in atoms] == before
    assert all(a.activation_score == 0.8 for a in result.memories)
    assert all(any(a is original for original in ltm) for a in result.memories)


def test_recall_without_graph_uses_direct_overlap(make_atom):
    engine = RecallEngine(graph=None)
    target = make_atom(["x"])
    result = engine.recall([target] + _stm(make_atom, ["x"]), current_turn=20)
    assert result.memories == [target]
    assert result.follow_up_concepts == []


def test_custom_capacities(make_atom):
    engine = RecallEngine(stm_capacity=2, ltm_recall_k=1)
    a, b = make_atom(["x"]), make_atom(["x"])
    stm = [make_atom(["x"], atom_type=U), make_atom([])]
    assert engine.recall([a, b] + stm, current_turn=0).memories == [a]


def test_prompt_block_lists_axioms_then_memories(engine, make_atom):
    memory = make_atom(["x"], text="We fixed the loop detector last week.")
    axiom  = make_atom(["x"], atom_type=A, text="Prefer small, verifiable steps.")
    result = engine.recall([memory, axiom] + _stm(make_atom, ["x"]), current_turn=20)

    block = build_prompt_block(result)
    assert block == result.prompt_block
    assert block.startswith("<memory_context>")
    assert block.index("Prefer small, verifiable steps.") < block.index("We fixed the loop detector")
    assert "model_response (act: " in block
