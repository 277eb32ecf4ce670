"""The artifact produced when a box is published to Vagrant Cloud."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from vagrantbox.core import Artifact

BUILDER_ID = "pearkes.post-processor.vagrant-cloud"


@dataclass
class CloudArtifact(Artifact):
    """A box version published for one provider under a tag."""

    provider: str
    tag: str

    def builder_id(self) -> str:
        return BUILDER_ID

    def files(self) -> list[str]:
        return []

    def id(self) -> str:
        return ""

    def state(self, name: str) -> Any:
        return None

    def destroy(self) -> None:
        return None

    def __str__(self) -> str:
        return f"'{self.provider}': {self.tag}"