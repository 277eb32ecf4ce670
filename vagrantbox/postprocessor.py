"""Turn the artifacts of known builders into Vagrant boxes."""

from __future__ import annotations

import dataclasses
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from vagrantbox.artifact import BoxArtifact
from vagrantbox.boxutil import (
    DEFAULT_COMPRESSION,
    copy_contents,
    create_dummy_box,
    dir_to_box,
    write_metadata,
)
from vagrantbox.cloud_providers import (
    AWSProvider,
    AzureProvider,
    DigitalOceanProvider,
    DockerProvider,
    GoogleProvider,
    ScalewayProvider,
)
from vagrantbox.core import Artifact, Provider, Ui
from vagrantbox.local_providers import (
    HypervProvider,
    LibVirtProvider,
    LXCProvider,
    ParallelsProvider,
    VBoxProvider,
    VMwareProvider,
)
from vagrantbox.templating import TemplateError, render

DEFAULT_OUTPUT = "packer_{{ .BuildName }}_{{.Provider}}.box"
ARTIFICE_BUILDER_ID = "packer.post-processor.artifice"

BUILTINS: dict[str, str] = {
    "mitchellh.amazonebs": "aws",
    "mitchellh.amazon.instance": "aws",
    "mitchellh.virtualbox": "virtualbox",
    "mitchellh.vmware": "vmware",
    "mitchellh.vmware-esx": "vmware",
    "pearkes.digitalocean": "digitalocean",
    "packer.googlecompute": "google",
    "hashicorp.scaleway": "scaleway",
    "packer.parallels": "parallels",
    "MSOpenTech.hyperv": "hyperv",
    "transcend.qemu": "libvirt",
    "ustream.lxc": "lxc",
    "Azure.ResourceManagement.VMImage": "azure",
    "packer.post-processor.docker-import": "docker",
    "packer.post-processor.docker-tag": "docker",
    "packer.post-processor.docker-push": "docker",
}

_PROVIDERS: dict[str, Callable[[], Provider]] = {
    "aws": AWSProvider,
    "scaleway": ScalewayProvider,
    "digitalocean": DigitalOceanProvider,
    "virtualbox": VBoxProvider,
    "vmware": VMwareProvider,
    "parallels": ParallelsProvider,
    "hyperv": HypervProvider,
    "libvirt": LibVirtProvider,
    "google": GoogleProvider,
    "lxc": LXCProvider,
    "azure": AzureProvider,
    "docker": DockerProvider,
}

_BOX_VAGRANTFILE = """
# The contents below were provided by the Packer Vagrant post-processor
{provider}

# The contents below (if any) are custom contents provided by the
# Packer template during image build.
{custom}
"""


class ConfigError(ValueError):
    """Raised when the post-processor configuration is invalid."""


@dataclass
class Config:
    """Settings of the Vagrant post-processor."""

    packer_build_name: str = ""
    packer_builder_type: str = ""
    packer_core_version: str = ""
    packer_debug: bool = False
    packer_force: bool = False
    packer_on_error: str = ""
    packer_user_variables: dict[str, str] = field(default_factory=dict)
    packer_sensitive_variables: list[str] = field(default_factory=list)
    compression_level: int = 0
    include: list[str] = field(default_factory=list)
    output_path: str = ""
    override: dict[str, Any] = field(default_factory=dict)
    vagrantfile_template: str = ""
    vagrantfile_template_generated: bool = False
    provider_override: str = ""


# Configuration key, Config attribute, value kind.
_FIELDS = (
    ("packer_build_name", "packer_build_name", "str"),
    ("packer_builder_type", "packer_builder_type", "str"),
    ("packer_core_version", "packer_core_version", "str"),
    ("packer_debug", "packer_debug", "bool"),
    ("packer_force", "packer_force", "bool"),
    ("packer_on_error", "packer_on_error", "str"),
    ("packer_user_variables", "packer_user_variables", "strmap"),
    ("packer_sensitive_variables", "packer_sensitive_variables", "strlist"),
    ("compression_level", "compression_level", "int"),
    ("include", "include", "strlist"),
    ("output", "output_path", "str"),
    ("override", "override", "map"),
    ("vagrantfile_template", "vagrantfile_template", "str"),
    ("vagrantfile_template_generated", "vagrantfile_template_generated", "bool"),
    ("provider_override", "provider_override", "str"),
)
_BY_KEY = {key: (key, attr, kind) for key, attr, kind in _FIELDS}

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _to_str(value: Any, weak: bool) -> str:
    if isinstance(value, str):
        return value
    if weak:
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return str(value)
    raise TypeError(f"expected type 'string', got {type(value).__name__}")


def _to_int(value: Any, weak: bool) -> int:
    if isinstance(value, bool):
        if weak:
            return int(value)
        raise TypeError("expected type 'int', got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if weak and isinstance(value, str):
        if value == "":
            return 0
        try:
            return int(value, 0)
        except ValueError:
            return int(value, 10)
    raise TypeError(f"expected type 'int', got {type(value).__name__}")


def _to_bool(value: Any, weak: bool) -> bool:
    if isinstance(value, bool):
        return value
    if weak:
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            if value == "" or value in _FALSE:
                return False
            if value in _TRUE:
                return True
            raise ValueError(f"cannot parse {value!r} as bool")
    raise TypeError(f"expected type 'bool', got {type(value).__name__}")


def _to_str_list(value: Any, weak: bool) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [_to_str(item, weak) for item in value]
    if weak and isinstance(value, str):
        return [value]
    raise TypeError(f"expected a list, got {type(value).__name__}")


def _to_str_map(value: Any, weak: bool) -> dict[str, str]:
    if isinstance(value, Mapping):
        return {str(k): _to_str(v, weak) for k, v in value.items()}
    raise TypeError(f"expected a map, got {type(value).__name__}")


def _to_map(value: Any, weak: bool) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return {str(k): v for k, v in value.items()}
    raise TypeError(f"expected a map, got {type(value).__name__}")


_COERCERS: dict[str, Callable[[Any, bool], Any]] = {
    "str": _to_str,
    "int": _to_int,
    "bool": _to_bool,
    "strlist": _to_str_list,
    "strmap": _to_str_map,
    "map": _to_map,
}


def _decode(config: Config, raw: Any, *, weak: bool, strict_keys: bool) -> set[str]:
    """Apply the keys of ``raw`` to ``config`` and return the keys that were set."""
    if not isinstance(raw, Mapping):
        raise ConfigError(f"expected a map of settings, got {type(raw).__name__}")
    seen: set[str] = set()
    for key, value in raw.items():
        spec = _BY_KEY.get(str(key).lower())
        if spec is None:
            if strict_keys:
                raise ConfigError(f"unknown configuration key: {key!r}")
            continue
        name, attr, kind = spec
        seen.add(name)
        if value is None:
            continue
        try:
            setattr(config, attr, _COERCERS[kind](value, weak))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"'{key}' {exc}") from exc
    return seen


def _interpolate(value: Any, user_variables: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return render(value, None, user_variables)
    if isinstance(value, (list, tuple)):
        return [_interpolate(item, user_variables) for item in value]
    if isinstance(value, Mapping):
        return {k: _interpolate(v, user_variables) for k, v in value.items()}
    return value


def _interpolate_raw(raw: Any, user_variables: Mapping[str, str]) -> Any:
    if not isinstance(raw, Mapping):
        return raw
    rendered: dict[Any, Any] = {}
    for key, value in raw.items():
        lowered = str(key).lower()
        try:
            if lowered == "output":
                # Rendered per build later; only checked for validity here.
                if isinstance(value, str):
                    render(value, {}, user_variables)
                rendered[key] = value
            elif lowered == "packer_user_variables":
                rendered[key] = value
            else:
                rendered[key] = _interpolate(value, user_variables)
        except TemplateError as exc:
            raise ConfigError(f"error processing {key}: {exc}") from exc
    return rendered


def _copy_config(config: Config) -> Config:
    return dataclasses.replace(
        config,
        packer_user_variables=dict(config.packer_user_variables),
        packer_sensitive_variables=list(config.packer_sensitive_variables),
        include=list(config.include),
        override=dict(config.override),
    )


def available_providers() -> list[str]:
    """Names of all providers a box can be built for, without duplicates."""
    return sorted(set(BUILTINS.values()))


def provider_for_name(name: str) -> Provider | None:
    """A new provider for ``name``, or None if the name is unknown."""
    factory = _PROVIDERS.get(name)
    return factory() if factory is not None else None


class PostProcessor:
    """Packs build artifacts into Vagrant boxes."""

    def __init__(self) -> None:
        self.config = Config()

    def configure(self, *args: Any) -> None:
        """Apply one or more maps of settings, later ones taking precedence."""
        config = _copy_config(self.config)

        user_variables: dict[str, str] = dict(config.packer_user_variables)
        for raw in args:
            if isinstance(raw, Mapping):
                for key, value in raw.items():
                    if str(key).lower() == "packer_user_variables" and value is not None:
                        try:
                            user_variables.update(_to_str_map(value, True))
                        except (TypeError, ValueError) as exc:
                            raise ConfigError(f"'{key}' {exc}") from exc

        keys: set[str] = set()
        for raw in args:
            keys |= _decode(config, _interpolate_raw(raw, user_variables), weak=True, strict_keys=True)

        if not config.output_path:
            config.output_path = DEFAULT_OUTPUT
        if "compression_level" not in keys:
            config.compression_level = DEFAULT_COMPRESSION
        self.config = config

        errors: list[str] = []
        if config.vagrantfile_template and not config.vagrantfile_template_generated:
            if not os.path.exists(config.vagrantfile_template):
                errors.append(f"vagrantfile_template '{config.vagrantfile_template}' does not exist")
        if errors:
            listed = "\n".join(f"* {error}" for error in errors)
            raise ConfigError(f"{len(errors)} error(s) occurred:\n\n{listed}")

        if config.provider_override:
            providers = available_providers()
            if config.provider_override not in providers:
                raise ConfigError(
                    f"The given provider_override {config.provider_override} is not valid. "
                    f"Please choose from one of {', '.join(providers)}"
                )

    def specific_config(self, name: str) -> Config:
        """The configuration with the overrides for provider ``name`` applied."""
        config = _copy_config(self.config)
        if name in config.override:
            try:
                _decode(config, config.override[name], weak=False, strict_keys=False)
            except ConfigError as exc:
                raise ConfigError(f"Error overriding config for {name}: {exc}") from exc
        return config

    def post_process_provider(
        self, name: str, provider: Provider, ui: Ui, artifact: Artifact
    ) -> tuple[BoxArtifact, bool]:
        """Build a box for ``provider``; return the box artifact and whether to keep the input."""
        config = self.specific_config(name)
        create_dummy_box(ui, config.compression_level)
        ui.say(f"Creating Vagrant box for '{name}' provider")

        state = artifact.state("generated_data")
        generated: dict[Any, Any] = dict(state) if isinstance(state, Mapping) else {}
        generated["ArtifactId"] = artifact.id()
        generated["BuildName"] = config.packer_build_name
        generated["Provider"] = name
        user_variables = config.packer_user_variables

        output_path = render(config.output_path, generated, user_variables)

        with tempfile.TemporaryDirectory(prefix="packer") as directory:
            for src in config.include:
                ui.message(f"Copying from include: {src}")
                dst = os.path.join(directory, os.path.basename(src))
                try:
                    copy_contents(dst, src)
                except OSError as exc:
                    raise OSError(f"Error copying include file: {src}\n\n{exc}") from exc

            vagrantfile, metadata = provider.process(ui, artifact, directory)
            write_metadata(directory, metadata)

            custom = ""
            if config.vagrantfile_template:
                ui.message(f"Using custom Vagrantfile: {config.vagrantfile_template}")
                with open(config.vagrantfile_template, encoding="utf-8") as handle:
                    custom = render(handle.read(), generated, user_variables)

            with open(os.path.join(directory, "Vagrantfile"), "w", encoding="utf-8") as handle:
                handle.write(_BOX_VAGRANTFILE.format(provider=vagrantfile, custom=custom))

            dir_to_box(output_path, directory, ui, config.compression_level)

        return BoxArtifact(name, output_path), provider.keep_input_artifact()

    def post_process(self, ui: Ui, artifact: Artifact) -> tuple[BoxArtifact, bool, bool]:
        """Build a box from ``artifact``.

        Returns the box artifact, whether to keep the input artifact, and
        whether that choice is forced.
        """
        name = self.config.provider_override
        if not name:
            builder_id = artifact.builder_id()
            if builder_id not in BUILTINS:
                raise ValueError(f"Unknown artifact type, can't build box: {builder_id}")
            name = BUILTINS[builder_id]

        provider = provider_for_name(name)
        if provider is None:
            if artifact.builder_id() == ARTIFICE_BUILDER_ID:
                raise ValueError(
                    "Unknown provider type: When using an artifact created by "
                    "the artifice post-processor, you need to set the "
                    "provider_override option."
                )
            raise RuntimeError(f"bad provider name: {name}")

        box, keep = self.post_process_provider(name, provider, ui, artifact)
        # Deleting some inputs (an AMI, say) would make the box useless, so keep is forced.
        return box, keep, True