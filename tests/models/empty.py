"""A module without entities."""

from dataclasses import dataclass


@dataclass
class NotMapped:
    value: int
