"""
REFLEX — Concept Extraction
Turns raw text into short normalized concept phrases using Gemini Flash.

Extraction is best-effort: any failure means "no concepts", which simply
gives the atom zero resonance during recall.
"""

import logging
import google.generativeai as genai
from typing import Callable, Optional

from .models import normalize_concepts

logger = logging.getLogger(__name__)

# CONFIGURATION
MIN_TEXT_LENGTH  = 10
MAX_CONCEPT_WORDS = 4
MODEL_NAME       = "gemini-2.5-flash"

SYSTEM_PROMPT = """You are a text analysis expert. Your task is to extract the key semantic concepts from a given piece of text.
- A concept should be a noun phrase, verb phrase, or key idea, typically 1-4 words long.
- Return a comma-separated list of concepts.
- Example: "How do I write a file in Rust?" -> "write file, Rust, file I/O"
- Example: "The agent seems to be stuck in a loop." -> "agent stuck, loop detection, recursive loop"
Input Text:
"""


def parse_concepts(raw: str) -> list:
    """Comma-separated model output -> lowercase phrases of 1-4 words."""
    if not raw:
        return []
    phrases = [p for p in raw.split(",") if 0 < len(p.split()) <= MAX_CONCEPT_WORDS]
    return list(normalize_concepts(phrases))


class ConceptExtractor:
    """
    Callable: extractor(text) -> list of concept phrases.

    generate_fn lets callers swap in any text -> text function (another
    model, a cache, a test double). When omitted a Gemini model is built.
    """

    def __init__(self, generate_fn: Optional[Callable[[str], str]] = None,
                 model_name: str = MODEL_NAME):
        self.model = None
        if generate_fn is None:
            self.model = genai.GenerativeModel(
                model_name=model_name,
                system_instruction=SYSTEM_PROMPT,
            )
            generate_fn = self._generate
        self._generate_fn = generate_fn

    def _generate(self, text: str) -> str:
        response = self.model.generate_content(text)
        return response.text

    def extract(self, text: str) -> list:
        if not text or len(text.strip()) < MIN_TEXT_LENGTH:
            return []
        try:
            return parse_concepts(self._generate_fn(text))
        except Exception as e:
            logger.error("Concept extraction failed: %s", e)
            return []

    __call__ = extract
