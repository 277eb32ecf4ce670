"""Providers for boxes that carry the virtual machine files themselves."""

from __future__ import annotations

import fnmatch
import logging
import os
import posixpath
import re
import shutil
import tarfile
from typing import Any

from vagrantbox.boxutil import copy_contents, link_file
from vagrantbox.core import Artifact, Provider, Ui

log = logging.getLogger(__name__)

_UINT64_MASK = (1 << 64) - 1
_DIGITS = re.compile(r"[0-9]+")

# Files and directories a Parallels virtual machine does not need to run.
UNNECESSARY_FILES_PATTERNS = [r"\.log$", r"\.backup$", r"\.Backup$", r"\.app/", r"/Windows Disks/"]
_PVM_PATH = re.compile(r"^(.+?)([^/]+\.pvm/.+?)$")
_BASE_MAC = re.compile(rb'<Adapter slot="0".+?MACAddress="(.+?)"')

_LIBVIRT_VAGRANTFILE = """
Vagrant.configure("2") do |config|
  config.vm.provider :libvirt do |libvirt|
    libvirt.driver = "{driver}"
  end
end
"""

_VBOX_VAGRANTFILE = """
Vagrant.configure("2") do |config|
  config.vm.base_mac = "{mac}"
end
"""

_LIBVIRT_DRIVERS = {"none": "qemu", "tcg": "qemu", "hvf": "qemu", "kvm": "kvm"}

_UNIT_SHIFTS = {"k": -1, "m": 0, "g": 1, "t": 2, "p": 3, "e": 4}


def size_in_megabytes(size: str) -> int:
    """Convert a disk image size such as ``"20G"`` to megabytes.

    Units B, K, M, G, T, P and E (case-insensitive) are powers of 1024;
    a bare number is taken as megabytes.
    """
    if not size:
        raise ValueError("empty size")
    unit = size[-1]
    if "0" <= unit <= "9":
        unit = "m"
    else:
        size = size[:-1]

    if _DIGITS.fullmatch(size):
        value = min(int(size), _UINT64_MASK)
    else:
        value = 0

    lowered = chr(ord(unit) | 0x20)
    if lowered == "b":
        return value // 1024 // 1024
    if lowered not in _UNIT_SHIFTS:
        raise ValueError(f"Unknown size unit {unit}")
    shift = _UNIT_SHIFTS[lowered]
    if shift < 0:
        return value // 1024
    return (value * 1024**shift) & _UINT64_MASK


def decompress_ova(directory: str | os.PathLike, src: str | os.PathLike) -> None:
    """Unpack the files of the tar archive ``src`` flat into ``directory``.

    Only the base name of each member is used, so no member can be written
    outside ``directory``. Directories in the archive are skipped.
    """
    log.info("Turning ova to dir: %s => %s", src, directory)
    if os.path.getsize(src) == 0:
        return
    with tarfile.open(src, mode="r:") as tar:
        for member in tar:
            if member.isdir():
                continue
            name = posixpath.basename(posixpath.normpath(member.name))
            path = os.path.join(os.fspath(directory), name)
            with open(path, "wb") as output:
                try:
                    os.chmod(path, member.mode & 0o7777)
                except OSError:
                    pass
                if member.isreg():
                    data = tar.extractfile(member)
                    if data is not None:
                        shutil.copyfileobj(data, output)
            try:
                os.utime(path, (member.mtime, member.mtime))
            except OSError:
                pass


def _state_str(artifact: Artifact, name: str) -> str:
    value = artifact.state(name)
    if not isinstance(value, str):
        raise TypeError(f"artifact state {name!r} is not a string: {value!r}")
    return value


def _extension(path: str) -> str:
    name = os.path.basename(path)
    index = name.rfind(".")
    return name[index:] if index >= 0 else ""


def _relative(base: str, target: str) -> str:
    if os.path.isabs(base) != os.path.isabs(target):
        raise ValueError(f"Rel: can't make {target} relative to {base}")
    return os.path.relpath(target, base)


def _copy_flat(ui: Ui, artifact: Artifact, directory: str) -> None:
    for path in artifact.files():
        ui.message(f"Copying: {path}")
        copy_contents(os.path.join(directory, os.path.basename(path)), path)


class HypervProvider(Provider):
    """Hyper-V boxes, keeping the exported directory layout."""

    def keep_input_artifact(self) -> bool:
        return False

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        metadata: dict[str, Any] = {"provider": "hyperv"}

        # The output directory is only available through the artifact's text form.
        parts = str(artifact).split(": ")
        if len(parts) < 2:
            raise ValueError(f"No output directory found in artifact: {artifact}")
        output_dir = parts[1]

        for path in artifact.files():
            ui.message(f"Copying: {path}")
            try:
                rel = _relative(output_dir, os.path.dirname(path))
            except ValueError:
                ui.message("err in: ")
                raise

            dst_dir = os.path.normpath(os.path.join(directory, rel))
            if not os.path.exists(dst_dir):
                try:
                    os.makedirs(dst_dir, mode=0o755, exist_ok=True)
                except OSError:
                    ui.message(f"err in creating: {dst_dir}")
                    raise

            dst_path = os.path.join(dst_dir, os.path.basename(path))
            # Disk images are large: link where the filesystem allows, copy otherwise.
            try:
                link_file(dst_path, path)
            except OSError:
                try:
                    copy_contents(dst_path, path)
                except OSError:
                    ui.message(f"err in copying: {path} to {dst_path}")
                    raise
            ui.message(f"Copied {path} to {dst_path}")

        return "", metadata


class LibVirtProvider(Provider):
    """libvirt boxes holding a single disk image."""

    def keep_input_artifact(self) -> bool:
        return False

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        disk_name = _state_str(artifact, "diskName")
        for path in artifact.files():
            if path.endswith("/" + disk_name):
                ui.message(f"Copying from artifact: {path}")
                copy_contents(os.path.join(directory, "box.img"), path)

        disk_format = _state_str(artifact, "diskType")
        orig_size = size_in_megabytes(_state_str(artifact, "diskSize"))
        size, remainder = divmod(orig_size, 1024)
        if remainder:
            size += 1

        domain_type = _state_str(artifact, "domainType")
        driver = _LIBVIRT_DRIVERS.get(domain_type)
        if driver is None:
            raise ValueError(f"Unknown libvirt domain type: {domain_type}")

        metadata: dict[str, Any] = {
            "provider": "libvirt",
            "format": disk_format,
            "virtual_size": size,
        }
        return _LIBVIRT_VAGRANTFILE.format(driver=driver), metadata


class LXCProvider(Provider):
    """LXC container boxes."""

    def keep_input_artifact(self) -> bool:
        return False

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        metadata: dict[str, Any] = {"provider": "lxc", "version": "1.0.0"}
        _copy_flat(ui, artifact, directory)
        return "", metadata


class ParallelsProvider(Provider):
    """Parallels boxes holding the .pvm bundle."""

    def keep_input_artifact(self) -> bool:
        return False

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        metadata: dict[str, Any] = {"provider": "parallels"}
        for path in artifact.files():
            if any(re.search(pattern, path) for pattern in UNNECESSARY_FILES_PATTERNS):
                continue
            match = _PVM_PATH.match(path.replace(os.sep, "/"))
            if match is None:
                continue
            pvm_path = match.group(2).replace("/", os.sep)
            dst_path = os.path.join(directory, pvm_path)
            ui.message(f"Copying: {path}")
            copy_contents(dst_path, path)
        return "", metadata


class VBoxProvider(Provider):
    """VirtualBox boxes built from an OVF export or an OVA archive."""

    def keep_input_artifact(self) -> bool:
        return False

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        metadata: dict[str, Any] = {"provider": "virtualbox"}
        for path in artifact.files():
            if _extension(path) == ".ova":
                ui.message(f"Unpacking OVA: {path}")
                decompress_ova(directory, path)
            else:
                ui.message(f"Copying from artifact: {path}")
                copy_contents(os.path.join(directory, os.path.basename(path)), path)

        ui.message("Renaming the OVF to box.ovf...")
        self._rename_ovf(directory)
        mac = self._find_base_mac_address(directory)
        return _VBOX_VAGRANTFILE.format(mac=mac), metadata

    @staticmethod
    def _find_ovf(directory: str) -> str:
        log.debug("Looking for OVF in artifact...")
        try:
            names = sorted(os.listdir(directory))
        except FileNotFoundError:
            names = []
        matches = [name for name in names if fnmatch.fnmatchcase(name, "*.ovf")]
        if len(matches) > 1:
            raise ValueError("More than one OVF file in VirtualBox artifact.")
        if not matches:
            raise ValueError("ovf file couldn't be found")
        return os.path.join(directory, matches[0])

    def _rename_ovf(self, directory: str) -> None:
        ovf = self._find_ovf(directory)
        log.debug("Renaming: '%s' => box.ovf", ovf)
        os.rename(ovf, os.path.join(directory, "box.ovf"))

    def _find_base_mac_address(self, directory: str) -> str:
        ovf = self._find_ovf(directory)
        with open(ovf, "rb") as handle:
            data = handle.read()
        match = _BASE_MAC.search(data)
        if match is None:
            raise ValueError("can't find base mac address in OVF")
        mac = match.group(1).decode("utf-8", errors="replace")
        log.debug("Base mac address: %s", mac)
        return mac


class VMwareProvider(Provider):
    """VMware desktop boxes."""

    def keep_input_artifact(self) -> bool:
        return False

    def process(self, ui: Ui, artifact: Artifact, directory: str) -> tuple[str, dict[str, Any]]:
        metadata: dict[str, Any] = {"provider": "vmware_desktop"}
        _copy_flat(ui, artifact, directory)
        return "", metadata