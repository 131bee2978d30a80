"""
REFLEX — main.py
Connects the Reflex recall core to Google Gemini.
Run: python main.py
"""

import os
import json
import logging
import logging.handlers
from dotenv import load_dotenv
import google.generativeai as genai
from reflex import (
    AtomType, ConceptAssociationGraph, ConceptExtractor, MemoryCrystal, SQLiteKVStore,
)

# Logging Setup

_log_handler = logging.handlers.RotatingFileHandler(
    filename="reflex_logs.jsonl",
    maxBytes=2 * 1024 * 1024,   # 2 MB
    backupCount=3,
    mode="a",
    encoding="utf-8",
)
_log_handler.setFormatter(logging.Formatter("%(message)s"))

# library modules log under "reflex.*" and stay out of the JSONL file
logger = logging.getLogger("reflex.turns")
logger.setLevel(logging.INFO)
logger.addHandler(_log_handler)
logger.propagate = False


def log_turn(turn, user_atom, response_atom, result):
    """Writes one JSONL line per turn with the full recall audit trail."""
    entry = {
        "turn":              turn,
        "user_input":        user_atom.text,
        "user_concepts":     list(user_atom.concepts),
        "ai_response":       response_atom.text,
        "follow_up_concepts": result.follow_up_concepts,
        "memories_recalled": [a.to_dict() for a in result.memories],
        "axioms_recalled":   [a.to_dict() for a in result.axioms],
    }
    logger.info(json.dumps(entry))

load_dotenv()

# Configuration

API_KEY = os.environ.get("GEMINI_API_KEY")

if not API_KEY:
    raise EnvironmentError(
        "GEMINI_API_KEY environment variable is not set.\n"
        "Run:  export GEMINI_API_KEY='your_key_here'"
    )

MODEL_ID = os.environ.get("REFLEX_MODEL_ID", "gemini-2.5-flash")
DB_PATH  = os.environ.get("REFLEX_DB_PATH", "reflex_memory.db")
SESSION_KEY = "session:main"

BASE_SYSTEM_PROMPT = """You are a helpful, intelligent assistant.
You may be given remembered context from earlier in this conversation.
Use it naturally and never mention that you have a memory system."""

genai.configure(api_key=API_KEY)


# ─── Gemini Wrapper ───────────────────────────────────────────────────────────

def gemini_wrapper(system_prompt: str, user_message: str) -> str:
    """
    One stateless call. Continuity comes from the recalled memory block in
    the system prompt, so no chat history is sent.
    """
    # system_instruction changes every turn, so the model is built per call
    model = genai.GenerativeModel(
        model_name=MODEL_ID,
        system_instruction=system_prompt,
    )
    try:
        response = model.generate_content(user_message)
        return response.text
    except Exception as e:
        error_msg = f"[Gemini API Error: {str(e)}]"
        logger.error(json.dumps({"error": str(e), "type": type(e).__name__}))
        return error_msg


def build_system_prompt(prompt_block: str) -> str:
    if not prompt_block:
        return BASE_SYSTEM_PROMPT
    return f"""{BASE_SYSTEM_PROMPT}

{prompt_block}

Use the memory context above to inform your response naturally."""


# ─── Main App ─────────────────────────────────────────────────────────────────

def main():
    store   = SQLiteKVStore(DB_PATH)
    graph   = ConceptAssociationGraph(store=store)
    crystal = MemoryCrystal(graph=graph, extractor=ConceptExtractor(model_name=MODEL_ID))

    saved = store.get(SESSION_KEY)
    if saved:
        crystal.load_dict(json.loads(saved))

    print(f"Reflex × {MODEL_ID} — ready ({len(crystal.atoms)} atoms in memory)")
    print("Logging to 'reflex_logs.jsonl'")
    print("Type 'exit' or 'quit' to stop.\n")

    try:
        while True:
            try:
                user_input = input("You: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\nExiting.")
                break

            if not user_input:
                continue

            if user_input.lower() in ("exit", "quit"):
                print("Goodbye.")
                break

            turn      = crystal.advance_turn()
            user_atom = crystal.create_atom(AtomType.USER_MESSAGE, user_input)
            result    = crystal.recall()

            response_text = gemini_wrapper(build_system_prompt(result.prompt_block), user_input)
            response_atom = crystal.create_atom(AtomType.MODEL_RESPONSE, response_text)
            crystal.link(user_atom, response_atom)

            print(f"Gemini: {response_text}\n")
            log_turn(turn, user_atom, response_atom, result)

            store.put(SESSION_KEY, json.dumps(crystal.to_dict()))
    finally:
        graph.close()
        store.close()


if __name__ == "__main__":
    main()
