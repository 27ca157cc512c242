"""
Repository list parsing.

A repository list is a comma-separated string. Paths containing a comma
are wrapped in double quotes; the double quote may not appear anywhere
else.
"""

import re

from tools.loading.base import MalformedPathList


DELIMITER = ","
QUOTE = '"'

PATH_PATTERN = re.compile(r'(".*?")|([^,]*)')


def parse_paths(value: str) -> list[str]:
    """
    Split a repository list into paths.

    Args:
        value: The (already placeholder-expanded) list

    Returns:
        Paths in order of appearance, duplicates kept

    Raises:
        MalformedPathList: If a quote appears other than around a whole path
    """
    result: list[str] = []
    for match in PATH_PATTERN.finditer(value):
        path = match.group(0).strip()
        if not path:
            continue

        if path[0] == QUOTE and path[-1] == QUOTE and len(path) > 1:
            path = path[1:-1].strip()
            if not path:
                continue
        elif QUOTE in path:
            raise MalformedPathList(
                'The double quote ["] character may only be used to quote paths. '
                f"It must not appear in a path. This loader path is not valid: [{value}]"
            )

        result.append(path)
    return result
