"""Topic reconciliation against the learner's requested topic list."""
from examcraft.core.errors import ValidationFailure


def reconcile_topic(parsed: str, requested: list[str]) -> str:
    """
    Map a model-written topic back onto one of the requested topics.

    1. Case-insensitive exact match → that requested topic.
    2. Otherwise a substring match in either direction; accepted only when
       exactly one requested topic matches.
    3. Otherwise ValidationFailure.

    Examples (requested = ["Algebra", "Linear Equations"]):
        "algebra"               → "Algebra"
        "Basic Algebra"         → "Algebra"
        "Equations"             → "Linear Equations"
        "Geometry"              → ValidationFailure
    """
    wanted = parsed.strip().lower()
    if not wanted:
        raise ValidationFailure("Topic is empty", field="TOPIC", value=parsed)

    for topic in requested:
        if topic.strip().lower() == wanted:
            return topic

    matches = [
        topic for topic in requested
        if topic.strip().lower() in wanted or wanted in topic.strip().lower()
    ]
    if len(matches) == 1:
        return matches[0]

    if matches:
        reason = f"ambiguous between {', '.join(matches)}"
    else:
        reason = f"not one of {', '.join(requested)}"
    raise ValidationFailure(f'Invalid topic "{parsed}": {reason}', field="TOPIC", value=parsed)
