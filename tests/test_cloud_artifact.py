from vagrantbox.cloud_artifact import BUILDER_ID, CloudArtifact
from vagrantbox.core import Artifact


def test_implements_artifact():
    artifact = CloudArtifact("virtualbox", "hashicorp/precise64")
    assert isinstance(artifact, Artifact)
    assert artifact.builder_id() == "pearkes.post-processor.vagrant-cloud"
    assert str(artifact) == "'virtualbox': hashicorp/precise64"


def test_builder_id():
    assert CloudArtifact("virtualbox", "a/b").builder_id() == "pearkes.post-processor.vagrant-cloud"
    assert BUILDER_ID == CloudArtifact("x", "y").builder_id()


def test_files_and_id_are_empty():
    artifact = CloudArtifact("virtualbox", "a/b")
    assert artifact.files() == []
    assert artifact.id() == ""
    assert artifact.state("anything") is None


def test_string_form():
    assert str(CloudArtifact("virtualbox", "hashicorp/precise64")) == "'virtualbox': hashicorp/precise64"


def test_destroy_returns_nothing():
    artifact = CloudArtifact("virtualbox", "a/b")
    assert artifact.destroy() is None
    assert artifact.tag == "a/b"