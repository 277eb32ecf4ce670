"""Shared interfaces: progress output, build artifacts and box providers."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence, TextIO


class Ui:
    """Records progress output and echoes it to the given streams, if any."""

    def __init__(self, stream: TextIO | None = None, error_stream: TextIO | None = None) -> None:
        self.stream = stream
        self.error_stream = error_stream if error_stream is not None else stream
        self.said: list[str] = []
        self.messages: list[str] = []
        self.errors: list[str] = []

    @staticmethod
    def _write(stream: TextIO | None, text: str) -> None:
        if stream is not None:
            print(text, file=stream)

    def say(self, message: str) -> None:
        """Announce a new stage of work."""
        self.said.append(message)
        self._write(self.stream, f"==> {message}")

    def message(self, message: str) -> None:
        """Report detail within the current stage."""
        self.messages.append(message)
        self._write(self.stream, f"    {message}")

    def error(self, message: str) -> None:
        """Report a problem."""
        self.errors.append(message)
        self._write(self.error_stream, message)


class Artifact(abc.ABC):
    """Something produced by a build step."""

    @abc.abstractmethod
    def builder_id(self) -> str:
        """Identifier of the component that produced the artifact."""

    @abc.abstractmethod
    def files(self) -> list[str]:
        """Paths of the files that make up the artifact."""

    @abc.abstractmethod
    def id(self) -> str:
        """Identifier of the artifact itself."""

    def state(self, name: str) -> Any:
        """Extra named state attached to the artifact."""
        return None

    def destroy(self) -> None:
        """Remove whatever the artifact refers to."""
        return None


@dataclass
class StaticArtifact(Artifact):
    """An artifact whose properties are given up front."""

    builder_id_value: str = ""
    files_value: Sequence[str] = ()
    id_value: str = ""
    string_value: str = ""
    state_values: Mapping[str, Any] = field(default_factory=dict)
    destroyed: bool = False

    def builder_id(self) -> str:
        return self.builder_id_value

    def files(self) -> list[str]:
        return list(self.files_value)

    def id(self) -> str:
        return self.id_value

    def state(self, name: str) -> Any:
        return self.state_values.get(name)

    def destroy(self) -> None:
        self.destroyed = True

    def __str__(self) -> str:
        return self.string_value


class Provider(abc.ABC):
    """Turns an artifact into the contents of a Vagrant box."""

    @abc.abstractmethod
    def keep_input_artifact(self) -> bool:
        """Whether the input artifact must be kept by default."""

    @abc.abstractmethod
    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        """Fill ``directory`` and return the Vagrantfile text and box metadata."""