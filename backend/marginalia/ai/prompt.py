"""Prompt construction for the margin editor."""

from dataclasses import dataclass

from marginalia.schemas.ai import AskAIMode, AskAIRequest

SYSTEM_PROMPT = """You are a calm, respectful margin editor: a collaborator who helps writers think clearly.

Core behavior:
- You only respond when explicitly asked; never offer unsolicited follow-ups
- Focus exclusively on the selected text and its immediate context
- Provide concise, actionable feedback (target 50-100 words unless asked otherwise)
- Respect the writer's voice and intent; suggest, never dictate
- If the user's intent is unclear, ask at most ONE clarifying question instead of guessing

Constraints:
- Work locally; do not suggest changes outside the selection
- Stay quiet after responding (no "Anything else?" or "Let me know if...")
- Do not invent sources; if unsure, say so
- The writer has final authority over all changes
- Respect the Project Brain (goal, constraints, glossary, decisions) when provided

You are helping a writer think, not writing for them. Be a margin comment, not an essay."""

CRITIQUE_INSTRUCTION = "Provide feedback on the selected text. Be specific and constructive."

SYNTHESIZE_INSTRUCTION = """Suggest an improved version of the selected text. Keep the writer's voice and intent.

Respond with a single JSON object in a ```json fenced block:
{"message": "<one or two sentences explaining the change>", "proposedText": "<the full rewritten selection>"}
If the request is ambiguous, you may add "clarifyingQuestion": "<one question>"."""


@dataclass(frozen=True)
class Prompt:
    system: str
    user: str


def build_margin_editor_prompt(request: AskAIRequest) -> Prompt:
    """Build the system instruction and the user message for a request."""
    return Prompt(system=SYSTEM_PROMPT, user=build_user_message(request))


def build_user_message(request: AskAIRequest) -> str:
    """
    Structure the request and its context, in a fixed order.

    Mode and request, selected text, local context, outline, Project Brain,
    full document, attached sources, then the mode's closing instruction.
    Optional sections are left out when empty.
    """
    context = request.context
    parts: list[str] = [
        f"**Mode**: {request.mode.value}",
        f"**User's request**: {request.user_prompt}",
        "",
        "**Selected text**:",
        context.selected_text,
        "",
    ]

    if context.local_context:
        parts += ["**Context** (surrounding text):", context.local_context, ""]

    if context.outline:
        parts += ["**Document structure**:", context.outline, ""]

    brain = request.brain
    if not brain.is_empty():
        parts.append("**Project Brain**:")
        if brain.goal:
            parts.append(f"Goal: {brain.goal}")
        if brain.constraints:
            parts.append(f"Constraints: {', '.join(brain.constraints)}")
        if brain.glossary:
            parts.append("Glossary:")
            parts += [f"  - {entry.term}: {entry.definition}" for entry in brain.glossary]
        if brain.decisions:
            parts.append("Past decisions:")
            parts += [f"  - {decision.text}" for decision in brain.decisions]
        parts.append("")

    if context.full_doc_text:
        parts += ["**Full document** (for reference only):", context.full_doc_text, ""]

    if context.sources:
        parts.append("**Attached sources**:")
        parts += [f"- {source.title}: {source.excerpt}" for source in context.sources]
        parts.append("")

    if request.mode is AskAIMode.CRITIQUE:
        parts.append(CRITIQUE_INSTRUCTION)
    else:
        parts.append(SYNTHESIZE_INSTRUCTION)

    return "\n".join(parts)
