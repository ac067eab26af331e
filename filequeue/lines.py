from __future__ import annotations

import os
import re

EOL = os.linesep
EOL_PATTERN = re.compile(r"\r?\n")


def split_lines(text: str) -> list[str]:
    """
    Split on both `\\n` and `\\r\\n`.

    A trailing line ending yields a trailing empty string, so
    `split_lines("a\\nb\\n") == ["a", "b", ""]`.
    """
    return EOL_PATTERN.split(text)


def make_line(data: str | bytes) -> str | bytes:
    if isinstance(data, str):
        return data if data.endswith(EOL) else data + EOL
    eol = EOL.encode("ascii")
    return data if data.endswith(eol) else bytes(data) + eol
