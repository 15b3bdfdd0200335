class AutoResponder:
    """Replies to messages containing a configured trigger (case-insensitive substring)."""

    def __init__(self, responses: dict[str, str]) -> None:
        # dicts keep insertion order, so the first configured trigger wins
        self._rules = [(trigger.lower(), reply) for trigger, reply in responses.items() if trigger.strip()]

    def match(self, text: str | None) -> str | None:
        if not text:
            return None
        lowered = text.lower()
        for trigger, reply in self._rules:
            if trigger in lowered:
                return reply
        return None

    def __len__(self) -> int:
        return len(self._rules)
