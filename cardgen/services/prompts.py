# ─────────────────────────────────────────────────────────────────────────────
# Prompt Templates — chat-completion messages for Adaptive Card generation
# ─────────────────────────────────────────────────────────────────────────────


SYSTEM_PROMPT = (
    "You are a helpful assistant that generates Adaptive Cards JSON. "
    "Create visually appealing cards that follow best practices for layout and design. "
    'Respond with a single JSON object whose top-level "type" is "AdaptiveCard" '
    "and nothing else: no markdown, no code fences, no commentary."
)

# ── Card requirements ────────────────────────────────────────────────────────
# Callers rely on these shaping the output (inputs, actions, list items).

_CARD_REQUIREMENTS: tuple[str, ...] = (
    "Make it visually appealing, using containers, column sets, and emphasis styles.",
    "Use structured input fields (Input.Text, Input.ChoiceSet, Input.Date, Input.Toggle) "
    "where the user is expected to provide data.",
    "Include buttons and other interactive elements (Action.Submit, Action.OpenUrl, "
    "Action.ShowCard) for the main user actions.",
    "If the content is list-like, render each item as a visually distinct, navigable "
    "list item, for example a separated container with its own selectAction.",
)


def build_user_prompt(description: str) -> str:
    """Embed the description verbatim into the user instruction.

    The description is opaque data: it is not stripped, escaped, or parsed.

    Args:
        description: Free text from the caller.

    Returns:
        The user message content.
    """
    requirements = "\n".join(f"- {line}" for line in _CARD_REQUIREMENTS)
    return f"Create an Adaptive Card JSON for: {description}\n\nRequirements:\n{requirements}"


def build_messages(description: str) -> list[dict[str, str]]:
    """Ordered system + user message list for the chat-completion call."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(description)},
    ]
