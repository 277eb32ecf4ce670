import pytest

from vagrantbox.artifact import BUILDER_ID, BoxArtifact
from vagrantbox.core import Artifact


def test_implements_artifact():
    artifact = BoxArtifact("vmware", "./")
    assert isinstance(artifact, Artifact)
    assert artifact.builder_id() == BUILDER_ID
    assert artifact.files() == ["./"]


def test_id_is_provider_name():
    artifact = BoxArtifact("vmware", "./")
    assert artifact.id() == "vmware"


def test_builder_id():
    assert BoxArtifact("vmware", "./").builder_id() == "mitchellh.post-processor.vagrant"
    assert BUILDER_ID == "mitchellh.post-processor.vagrant"


def test_files_and_string():
    artifact = BoxArtifact("vmware", "./")
    assert artifact.files() == ["./"]
    assert str(artifact) == "'vmware' provider box: ./"
    assert artifact.state("anything") is None


def test_destroy_removes_box(tmp_path):
    box = tmp_path / "out.box"
    box.write_bytes(b"box")
    BoxArtifact("virtualbox", str(box)).destroy()
    assert not box.exists()


def test_destroy_missing_box_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        BoxArtifact("virtualbox", str(tmp_path / "missing.box")).destroy()