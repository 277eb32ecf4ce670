import json
import tarfile

import pytest

from vagrantbox.artifact import BoxArtifact
from vagrantbox.core import StaticArtifact, Ui
from vagrantbox.local_providers import VBoxProvider
from vagrantbox.postprocessor import (
    DEFAULT_OUTPUT,
    ConfigError,
    PostProcessor,
    available_providers,
    provider_for_name,
)


def configured(settings=None):
    processor = PostProcessor()
    processor.configure(settings or {})
    return processor


def read_member(box_path, name):
    with tarfile.open(box_path, "r:*") as tar:
        member = tar.extractfile(name)
        return member.read().decode("utf-8")


def member_names(box_path):
    with tarfile.open(box_path, "r:*") as tar:
        return sorted(tar.getnames())


def test_compression_level_default_and_set():
    processor = PostProcessor()
    processor.configure({})
    assert processor.config.compression_level == -1

    processor.configure({"compression_level": 7})
    assert processor.config.compression_level == 7


def test_compression_level_weakly_typed():
    processor = configured({"compression_level": "5"})
    assert processor.config.compression_level == 5


def test_output_path_default_and_bad_template():
    processor = PostProcessor()
    processor.configure({})
    assert processor.config.output_path == DEFAULT_OUTPUT

    with pytest.raises(ConfigError):
        processor.configure({"output": "bad {{{{.Template}}}}"})


def test_specific_config():
    processor = configured(
        {
            "compression_level": 1,
            "output": "folder",
            "override": {"aws": {"compression_level": 7}},
        }
    )

    config = processor.specific_config("aws")
    assert config.compression_level == 7
    assert config.output_path == "folder"

    config = processor.specific_config("virtualbox")
    assert config.compression_level == 1
    assert config.output_path == "folder"
    assert processor.config.compression_level == 1


def test_specific_config_bad_override():
    processor = configured({"override": {"aws": {"compression_level": "high"}}})
    with pytest.raises(ConfigError, match="Error overriding config for aws"):
        processor.specific_config("aws")


def test_vagrantfile_template_exists(tmp_path):
    template = tmp_path / "packer"
    template.write_text("")
    settings = {"vagrantfile_template": str(template)}

    processor = PostProcessor()
    processor.configure(settings)
    assert processor.config.vagrantfile_template == str(template)

    template.unlink()
    with pytest.raises(ConfigError, match="does not exist"):
        processor.configure(settings)

    settings["vagrantfile_template_generated"] = True
    processor.configure(settings)
    assert processor.config.vagrantfile_template_generated is True


def test_provider_override_validated():
    processor = PostProcessor()
    with pytest.raises(ConfigError, match="provider_override foo is not valid"):
        processor.configure({"provider_override": "foo"})

    processor.configure({"provider_override": "aws"})
    assert processor.config.provider_override == "aws"


def test_unknown_key_rejected():
    with pytest.raises(ConfigError, match="unknown configuration key"):
        PostProcessor().configure({"no_such_setting": 1})


def test_post_process_bad_id():
    artifact = StaticArtifact(builder_id_value="invalid.packer")
    with pytest.raises(ValueError, match="artifact type"):
        configured().post_process(Ui(), artifact)


def test_post_process_artifice_needs_override():
    artifact = StaticArtifact(builder_id_value="packer.post-processor.artifice")
    with pytest.raises(ValueError, match="Unknown artifact type"):
        configured().post_process(Ui(), artifact)


def test_post_process_vagrantfile_user_variable(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    template = tmp_path / "custom.vagrantfile"
    template.write_text("# custom for {{ .Provider }}\n")

    processor = configured(
        {
            "packer_user_variables": {"foo": str(template)},
            "vagrantfile_template": "{{user `foo`}}",
        }
    )
    assert processor.config.vagrantfile_template == str(template)

    artifact = StaticArtifact(builder_id_value="packer.parallels")
    box, keep, forced = processor.post_process(Ui(), artifact)

    assert isinstance(box, BoxArtifact)
    assert box.id() == "parallels"
    assert box.path == "packer__parallels.box"
    assert keep is False
    assert forced is True
    assert (tmp_path / "packer__parallels.box").is_file()
    assert member_names(box.path) == ["Vagrantfile", "metadata.json"]
    assert "# custom for parallels" in read_member(box.path, "Vagrantfile")
    assert json.loads(read_member(box.path, "metadata.json")) == {"provider": "parallels"}


def test_post_process_docker_with_include(tmp_path):
    include = tmp_path / "info.json"
    include.write_text('{"author": "nobody"}')
    output = tmp_path / "out" / "{{ .Provider }}-{{ .ArtifactId }}.box"
    processor = configured(
        {"output": str(output), "include": [str(include)], "compression_level": 0}
    )
    artifact = StaticArtifact(
        builder_id_value="packer.post-processor.docker-import", id_value="myimage"
    )
    ui = Ui()

    box, keep, forced = processor.post_process(ui, artifact)

    expected = tmp_path / "out" / "docker-myimage.box"
    assert box.path == str(expected)
    assert keep is False
    assert forced is True
    assert member_names(box.path) == ["Vagrantfile", "info.json", "metadata.json"]
    vagrantfile = read_member(box.path, "Vagrantfile")
    assert 'docker.image = "myimage"' in vagrantfile
    assert "provided by the Packer Vagrant post-processor" in vagrantfile
    assert read_member(box.path, "info.json") == '{"author": "nobody"}'
    assert "Creating Vagrant box for 'docker' provider" in ui.said


def test_post_process_uses_generated_data_and_override(tmp_path):
    processor = configured(
        {
            "output": str(tmp_path / "{{ .Extra }}.box"),
            "provider_override": "google",
        }
    )
    artifact = StaticArtifact(
        builder_id_value="anything",
        id_value="packer-1234",
        state_values={"generated_data": {"Extra": "gen"}},
    )

    box, keep, _ = processor.post_process(Ui(), artifact)

    assert box.path == str(tmp_path / "gen.box")
    assert keep is True
    assert 'google.image = "packer-1234"' in read_member(box.path, "Vagrantfile")


def test_post_process_missing_include(tmp_path):
    processor = configured(
        {"output": str(tmp_path / "x.box"), "include": [str(tmp_path / "missing.txt")]}
    )
    artifact = StaticArtifact(builder_id_value="packer.googlecompute", id_value="img")
    with pytest.raises(OSError, match="Error copying include file"):
        processor.post_process(Ui(), artifact)


def test_provider_for_name():
    assert isinstance(provider_for_name("virtualbox"), VBoxProvider)
    assert provider_for_name("nope") is None


def test_available_providers_deduplicated():
    providers = available_providers()
    assert len(providers) == len(set(providers)) == 12
    assert "docker" in providers
    assert "aws" in providers
    assert all(provider_for_name(name) is not None for name in providers)