"""Environment file parser.

Files are user-owned and may contain shell syntax, so the parser is
tolerant: anything that is not a ``NAME=VALUE`` assignment is skipped.
"""
import re

_ASSIGNMENT = re.compile(
    r"^(?:export\s+)?(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*=(?P<value>.*)$"
)


def strip_quotes(value: str) -> str:
    """Remove one pair of matching surrounding quotes; no escape processing."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_line(line: str) -> tuple[str, str] | None:
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    match = _ASSIGNMENT.match(line)
    if match is None:
        return None
    return match.group("name"), strip_quotes(match.group("value").strip())


def parse(contents: str) -> list[tuple[str, str]]:
    """Parse env file contents into ordered ``(name, value)`` pairs.

    A name assigned twice keeps its first position and takes the last
    value, as sourcing the file in a shell would.
    """
    variables: dict[str, str] = {}
    for line in contents.splitlines():
        parsed = parse_line(line)
        if parsed is None:
            continue
        name, value = parsed
        variables[name] = value
    return list(variables.items())
