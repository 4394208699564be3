from __future__ import annotations

from dataclasses import dataclass

from entmapper import udt


@udt(name="work_address")
@dataclass
class Address:
    company: str
    floor: int
