"""The artifact produced when a Vagrant box is written."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from vagrantbox.core import Artifact

BUILDER_ID = "mitchellh.post-processor.vagrant"


@dataclass
class BoxArtifact(Artifact):
    """A box file on disk built for one provider."""

    provider: str
    path: str

    def builder_id(self) -> str:
        return BUILDER_ID

    def files(self) -> list[str]:
        return [self.path]

    def id(self) -> str:
        return self.provider

    def state(self, name: str) -> Any:
        return None

    def destroy(self) -> None:
        os.remove(self.path)

    def __str__(self) -> str:
        return f"'{self.provider}' provider box: {self.path}"