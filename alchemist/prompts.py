"""Prompt template for element merges."""

MERGE_PROMPT_TEMPLATE = """You are an expert in fantasy alchemy and elemental combination games.
When the player combines "{element_a}" and "{element_b}", what single new element should be created?
Examples:
- Water + Fire → Steam
- Earth + Water → Mud
- Fire + Air → Smoke
Reply with ONLY the name of the resulting element (one word or compound word), or exactly "None" if no combination makes sense.
Result:"""


def build_merge_prompt(element_a: str, element_b: str) -> str:
    """Render the merge prompt for a pair of elements."""
    return MERGE_PROMPT_TEMPLATE.format(element_a=element_a, element_b=element_b)
