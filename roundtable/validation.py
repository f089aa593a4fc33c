"""Checks a statement must pass before it enters the debate history."""

from collections.abc import Collection, Iterable

from roundtable.models import StatementRules


class InvalidStatement(ValueError):
    """Statement content broke one or more rules. ``errors`` lists every problem found."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = tuple(errors)
        super().__init__("; ".join(self.errors))


def validate_statement(
    content: str,
    rules: StatementRules,
    references: Iterable[str] = (),
    known_ids: Collection[str] = (),
) -> list[str]:
    """Return every rule the statement breaks. An empty list means it is valid.

    References must name statements already in ``known_ids``.
    """
    errors: list[str] = []
    if len(content) > rules.max_length:
        errors.append(f"Statement is longer than {rules.max_length} characters ({len(content)})")
    if len(content) < rules.min_length:
        errors.append(f"Statement is shorter than {rules.min_length} characters ({len(content)})")

    missing = [ref for ref in references if ref not in known_ids]
    if missing:
        errors.append(f"Referenced statements do not exist: {', '.join(missing)}")
    return errors
