"""Prompt templates for grounded answers and study notes."""
from typing import List, Optional, Sequence

from models.conversation import ConversationTurn, ROLE_USER

CONTEXT_SEPARATOR = "\n\n---\n\n"

DEFAULT_NOTES_FORMAT = "bullet-points"

PERSONA_SYSTEM_MESSAGE = (
    "You are Smarty, a friendly study assistant for school students. "
    "Explain clearly and stay faithful to the provided textbook content."
)

_FORMAT_INSTRUCTIONS = {
    "bullet-points": "Use bullet points (•) to organize key information. Group related points under clear headings.",
    "outline": "Create a hierarchical outline with numbered sections (1, 1.1, 1.2, etc.) and subsections.",
    "flashcards": "Format as Q&A pairs suitable for flashcards. Use 'Q:' for questions and 'A:' for answers.",
    "summary": "Write a concise narrative summary covering the main points in paragraph form.",
}


def get_format_instructions(format: Optional[str]) -> str:
    """Instruction for the requested notes format; unknown formats get bullet points."""
    key = (format or DEFAULT_NOTES_FORMAT).strip().lower()
    return _FORMAT_INSTRUCTIONS.get(key, _FORMAT_INSTRUCTIONS[DEFAULT_NOTES_FORMAT])


def format_history(turns: Sequence[ConversationTurn]) -> str:
    """Render prior turns as Student/Smarty lines, oldest first."""
    lines = []
    for turn in turns:
        speaker = "Student" if turn.role == ROLE_USER else "Smarty"
        lines.append(f"{speaker}: {turn.message}")
    return "\n".join(lines)


def build_answer_prompt(
    question: str,
    chunk_texts: List[str],
    history: Optional[Sequence[ConversationTurn]] = None
) -> str:
    """
    Build the question-answering prompt.

    Args:
        question: The student's question
        chunk_texts: Retrieved chunk texts, most similar first
        history: Prior conversation turns, oldest first

    Returns:
        Prompt text ending with the answer cue
    """
    context_text = CONTEXT_SEPARATOR.join(chunk_texts)

    parts = ["You are Smarty, a helpful study assistant."]

    if history:
        parts.append(f"Previous conversation:\n{format_history(history)}")

    parts.append("Use ONLY the context below to answer briefly and accurately.")
    parts.append(f"Context:\n{context_text}")
    parts.append(f"Question:\n{question}")
    parts.append("Answer:")

    return "\n\n".join(parts)


def build_study_notes_prompt(topic: str, format: Optional[str], chunk_texts: List[str]) -> str:
    """Build the study notes prompt for a topic and notes format."""
    context_text = CONTEXT_SEPARATOR.join(chunk_texts)

    lines = [
        "### ROLE: You are Smarty, an expert study notes creator.",
        "### TASK: Create comprehensive, well-organized study notes on the given topic.",
        f"### FORMAT: {get_format_instructions(format)}",
        "### GUIDELINES:",
        "- Include key concepts, definitions, and important details",
        "- Organize information logically",
        "- Highlight essential points that students should remember",
        "- Use clear, concise language",
        "- Add relevant examples where helpful",
        "- Use ONLY the source content below",
        "",
        "### SOURCE CONTENT:",
        context_text,
        "",
        f"### TOPIC: {topic}",
        "",
        "### STUDY NOTES:",
    ]
    return "\n".join(lines)
