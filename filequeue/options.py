from __future__ import annotations

import codecs
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, field_validator


class WriteOptions(BaseModel):
    """
    Options accepted by write/append and their line variants.

    `mode` only matters when the call creates the file; it is passed to the
    OS as-is and masked by the process umask.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    encoding: str | None = None
    mode: int = 0o666

    @field_validator("encoding")
    @classmethod
    def _known_encoding(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                codecs.lookup(value)
            except LookupError as e:
                raise ValueError(f"unknown encoding: {value}") from e
        return value

    @classmethod
    def coerce(cls, value: "WriteOptions | Mapping[str, Any] | str | None") -> "WriteOptions":
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            # Shorthand: a bare string names the encoding.
            return cls(encoding=value)
        if isinstance(value, Mapping):
            return cls.model_validate(dict(value))
        return cls.model_validate(value)
