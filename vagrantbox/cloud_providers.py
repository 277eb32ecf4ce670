"""Providers for boxes that point at images held by cloud services."""

from __future__ import annotations

from typing import Any

from vagrantbox.core import Artifact, Provider, Ui

_AWS_HEAD = """
Vagrant.configure("2") do |config|
  config.vm.provider "aws" do |aws|
    """
_AWS_ENTRY = '\n\taws.region_config "{region}", ami: "{ami}"\n\t'
_AWS_TAIL = """
  end
end
"""

_AZURE_MANAGED_IMAGE = """
Vagrant.configure("2") do |config|
	config.vm.provider :azure do |azure, override|
		azure.location = "{location}"
		azure.vm_managed_image_id = "{image_id}"
		override.winrm.transport = :ssl
		override.winrm.port = 5986
	end
end
"""

_AZURE_VHD = """
Vagrant.configure("2") do |config|
	config.vm.provider :azure do |azure, override|
		azure.location = "{location}"
		azure.vm_vhd_uri = "{uri}"
		azure.vm_operating_system = "{os_type}"
		override.winrm.transport = :ssl
		override.winrm.port = 5986
	end
end
"""

_DIGITALOCEAN = """
Vagrant.configure("2") do |config|
  config.vm.provider :digital_ocean do |digital_ocean|
	digital_ocean.image = "{image}"
	digital_ocean.region = "{region}"
  end
end
"""

_DOCKER = """
Vagrant.configure("2") do |config|
	config.vm.provider :docker do |docker, override|
		docker.image = "{image}"
	end
end
"""

_GOOGLE = """
Vagrant.configure("2") do |config|
  config.vm.provider :google do |google|
    google.image = "{image}"
  end
end
"""

_SCALEWAY = """
Vagrant.configure("2") do |config|
  config.vm.provider :scaleway do |scaleway|
	scaleway.image = "{image}"
	scaleway.region = "{region}"
  end
end
"""


def _region_and_image(artifact: Artifact) -> tuple[str, str]:
    parts = artifact.id().split(":")
    if len(parts) != 2:
        raise ValueError(f"Poorly formatted artifact ID: {artifact.id()}")
    return parts[0], parts[1]


class AWSProvider(Provider):
    """Boxes referring to AMIs, one per region."""

    def keep_input_artifact(self) -> bool:
        return True

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        metadata: dict[str, Any] = {"provider": "aws"}
        images: dict[str, str] = {}
        for region in artifact.id().split(","):
            parts = region.split(":")
            if len(parts) != 2:
                raise ValueError(f"Poorly formatted artifact ID: {artifact.id()}")
            images[parts[0]] = parts[1]
        entries = "".join(
            _AWS_ENTRY.format(region=region, ami=ami) for region, ami in sorted(images.items())
        )
        return _AWS_HEAD + entries + _AWS_TAIL, metadata


class AzureProvider(Provider):
    """Boxes referring to an Azure managed image or VHD."""

    def keep_input_artifact(self) -> bool:
        return True

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        metadata: dict[str, Any] = {"provider": "azure"}
        # The image properties are only available through the artifact's text form.
        artifact_string = str(artifact)
        ui.message(f"artifact string: '{artifact_string}'")
        props: dict[str, str] = {}
        for line in artifact_string.split("\n"):
            split = line.split(": ")
            if len(split) > 1:
                props[split[0].strip()] = split[1].strip()
        rendered = " ".join(f"{key}:{value}" for key, value in sorted(props.items()))
        ui.message(f"artifact string parsed: map[{rendered}]")

        if props.get("ManagedImageId", ""):
            vagrantfile = _AZURE_MANAGED_IMAGE.format(
                location=props.get("ManagedImageLocation", ""),
                image_id=props["ManagedImageId"],
            )
        elif props.get("OSDiskUri", ""):
            vagrantfile = _AZURE_VHD.format(
                location=props.get("StorageAccountLocation", ""),
                uri=props["OSDiskUri"],
                os_type=props.get("OSType", ""),
            )
        else:
            raise ValueError(f"No managed image nor VHD URI found in artifact: {artifact_string}")
        return vagrantfile, metadata


class DigitalOceanProvider(Provider):
    """Boxes referring to a DigitalOcean image in a region."""

    def keep_input_artifact(self) -> bool:
        return True

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        metadata: dict[str, Any] = {"provider": "digital_ocean"}
        region, image = _region_and_image(artifact)
        return _DIGITALOCEAN.format(image=image, region=region), metadata


class DockerProvider(Provider):
    """Boxes referring to a Docker image."""

    def keep_input_artifact(self) -> bool:
        return False

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        metadata: dict[str, Any] = {"provider": "docker"}
        return _DOCKER.format(image=artifact.id()), metadata


class GoogleProvider(Provider):
    """Boxes referring to a Google Compute image."""

    def keep_input_artifact(self) -> bool:
        return True

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        metadata: dict[str, Any] = {"provider": "google"}
        return _GOOGLE.format(image=artifact.id()), metadata


class ScalewayProvider(Provider):
    """Boxes referring to a Scaleway image in a region."""

    def keep_input_artifact(self) -> bool:
        return True

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        metadata: dict[str, Any] = {"provider": "scaleway"}
        region, image = _region_and_image(artifact)
        return _SCALEWAY.format(image=image, region=region), metadata