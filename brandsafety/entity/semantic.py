"""
brandsafety/entity/semantic.py
===============================
Semantic Entity Verification — Brand Safety entity stage (pass 2)

Responsibility:
    - Ask the classification provider whether a web result refers to the
      target creator, given the full identifier list
    - Parse a structured {"matchesCreator": bool, "reason": str} answer
    - FAIL CLOSED: any response that does not match that shape is a
      rejection, never an exception

This pass is slower and paid; it runs only when the local heuristics are
inconclusive.

This module does NOT:
    - Run local heuristics
    - Classify risk
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from brandsafety.entity.heuristics import SnippetContext
from brandsafety.models import CreatorEntityProfile
from brandsafety.openai_retry import chat_completions_with_retry

logger = logging.getLogger("brandsafety.entity.semantic")


_SYSTEM_PROMPT: str = (
    "You are an entity disambiguation assistant for brand safety. "
    "Respond in JSON only."
)


@dataclass(frozen=True)
class EntityVerification:
    """Parsed semantic verdict."""

    matches_creator: bool
    reason: str


def build_verification_prompt(
    context: SnippetContext,
    profile: CreatorEntityProfile,
) -> str:
    """Build the user message for one semantic identity check."""
    target = profile.primary_name or "the target creator"
    identifier_list = ", ".join(profile.identifiers)

    lines = [
        f"Title: {context.title}" if context.title else "",
        f"URL: {context.url}" if context.url else "",
        f"Meta: {context.meta_description}" if context.meta_description else "",
        f"Rich snippet: {context.rich_snippet}" if context.rich_snippet else "",
        f"Snippet: {context.snippet}" if context.snippet else "",
    ]
    context_block = "\n".join(line for line in lines if line)

    return (
        f"We are checking whether the following web result refers to the "
        f"creator {target} (also known as: {identifier_list}).\n\n"
        f"{context_block}\n\n"
        "Respond ONLY in JSON:\n"
        '{\n  "matchesCreator": true or false,\n  "reason": ""\n}\n\n'
        "Rules:\n"
        "- Return false if the text refers to a different person with a "
        "similar name.\n"
        "- Return false if the text refers to a fictional character, artist, "
        f"or influencer unrelated to {target}.\n"
        "- Return false if the name appears inside another word (such as "
        '"alias").\n'
        "- If the text plausibly describes the creator based on career, "
        "platform, domain, or context, return true.\n"
        "- Only return false if it clearly refers to a different person."
    )


def parse_verification_response(raw: str) -> EntityVerification:
    """
    Validate the provider answer. Anything off-shape is a rejection.
    """
    try:
        parsed: Any = json.loads((raw or "").strip())
    except json.JSONDecodeError:
        return EntityVerification(False, "Unable to parse verification response")

    if not isinstance(parsed, dict):
        return EntityVerification(False, "Verification response is not an object")

    matches = parsed.get("matchesCreator")
    if not isinstance(matches, bool):
        return EntityVerification(
            False, f"matchesCreator must be a boolean, got {matches!r}",
        )

    reason = parsed.get("reason")
    return EntityVerification(matches, reason if isinstance(reason, str) else "")


async def verify_entity_with_llm(
    context: SnippetContext,
    profile: CreatorEntityProfile,
    client: Any,
    model: str,
) -> EntityVerification:
    """
    Run the remote semantic identity check for one evidence item.

    Provider errors propagate to the caller; malformed answers do not.

    Args:
        context: Text fields of the evidence item.
        profile: Entity profile of the target creator.
        client:  An instantiated ``openai.AsyncOpenAI`` client.
        model:   Chat model name.
    """
    response = await chat_completions_with_retry(
        client,
        model=model,
        temperature=0,
        response_format={"type": "json_object"},
        messages=[
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": build_verification_prompt(context, profile)},
        ],
    )

    raw_content = response.choices[0].message.content or ""
    logger.debug("Raw verification response: %s", raw_content)

    verdict = parse_verification_response(raw_content)
    logger.info(
        "Semantic check for %s: matches=%s (%s)",
        context.url or context.title, verdict.matches_creator, verdict.reason,
    )
    return verdict
