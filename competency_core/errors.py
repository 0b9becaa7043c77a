from __future__ import annotations


class InvalidCategory(ValueError):
    """Raised when a skill category key is not part of the taxonomy."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"unknown skill category: {value!r}")
