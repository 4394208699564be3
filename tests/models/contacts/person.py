from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Optional
from uuid import UUID

from entmapper import PartitionKey, entity

from . import home, work


@entity
@dataclass
class Person:
    id: Annotated[UUID, PartitionKey()]
    home_address: Optional[home.Address] = None
    work_address: Optional[work.Address] = None
