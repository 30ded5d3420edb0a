"""Path templates with ``{name}`` placeholders.

Templates such as ``/users/{id}/posts/{post_id}`` are compiled into anchored,
case-insensitive regular expressions with one named group per placeholder.
Each placeholder matches a single non-empty path segment. Patterns anchor
at the very end of the path, so a trailing newline never matches.

Literal segments are inserted into the pattern as written, so a ``.`` in a
template (``/users.get``) matches any character.
"""

import re
from typing import Final

PATH_PARAMETER_PATTERN: Final[re.Pattern[str]] = re.compile(r"\{(.+?)\}")


def get_path_parameters(template: str) -> list[str]:
    """Return the placeholder names of a template, in order.

    Args:
        template: Path template, e.g. ``/users/{id}``.

    Returns:
        list[str]: Placeholder names, e.g. ``["id"]``.
    """
    return PATH_PARAMETER_PATTERN.findall(template)


def get_path_regexp(template: str) -> re.Pattern[str]:
    """Compile a path template into a matching pattern.

    Args:
        template: Normalized path template.

    Returns:
        re.Pattern[str]: Anchored, case-insensitive pattern with named groups.

    Raises:
        ValueError: If a placeholder name is repeated or is not an identifier.
    """
    seen: set[str] = set()
    for name in get_path_parameters(template):
        if not name.isidentifier():
            msg = f'Path parameter "{name}" must be a valid identifier'
            raise ValueError(msg)
        if name in seen:
            msg = f'Path parameter "{name}" is defined more than once'
            raise ValueError(msg)
        seen.add(name)

    pattern = PATH_PARAMETER_PATTERN.sub(r"(?P<\1>[^/]+)", template)
    return re.compile(f"^{pattern}\\Z", re.IGNORECASE)


def normalize_path(path: str) -> str:
    """Normalize a path to exactly one leading slash and no trailing slash.

    Args:
        path: Request path or path template.

    Returns:
        str: The normalized path; ``""`` and ``"/"`` normalize to ``"/"``.
    """
    path = path.removeprefix("/").removesuffix("/")
    return f"/{path}"
