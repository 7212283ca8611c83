"""
Prompt templates for match explanations.
"""

from typing import Dict, List

from ..core.types import LoincCode


EXPLANATION_SYSTEM_PROMPT = (
    "You are a medical terminology expert. Explain why a LOINC code matches a "
    "user's query. Be concise and focus on the medical relevance. Keep "
    "explanations under 100 words."
)

FALLBACK_EXPLANATION = "This code matches based on semantic similarity to your query."


def build_explanation_messages(query: str, record: LoincCode) -> List[Dict[str, str]]:
    """Build the chat messages asking why ``record`` matches ``query``."""
    user_prompt = (
        f'Query: "{query}"\n'
        f"LOINC Code: {record.code}\n"
        f"Display Name: {record.display_name}\n"
        f"Component: {record.component}\n"
        f"System: {record.system}\n"
        f"Property: {record.property}\n"
        f"\n"
        f"Explain why this LOINC code matches the query:"
    )
    return [
        {"role": "system", "content": EXPLANATION_SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]
