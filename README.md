# vagrantbox

`vagrantbox` turns the output of a machine image build into a Vagrant box:
a tar archive (gzip-compressed unless the compression level is 0) holding a
`metadata.json`, a `Vagrantfile` and whatever disk images and descriptors the
provider needs. It also carries a small client and data types for the
Vagrant Cloud API.

## Modules

- `vagrantbox.core` – `Ui` (collects and optionally prints progress output),
  the abstract `Artifact` and `Provider` classes, and `StaticArtifact`, an
  artifact whose builder id, files, id, text and state are given up front.
- `vagrantbox.postprocessor` – `PostProcessor`, `Config`, `ConfigError`,
  `available_providers()` and `provider_for_name()`.
- `vagrantbox.cloud_providers` – `AWSProvider`, `AzureProvider`,
  `DigitalOceanProvider`, `DockerProvider`, `GoogleProvider`,
  `ScalewayProvider`.
- `vagrantbox.local_providers` – `HypervProvider`, `LibVirtProvider`,
  `LXCProvider`, `ParallelsProvider`, `VBoxProvider`, `VMwareProvider`, plus
  `size_in_megabytes()` and `decompress_ova()`.
- `vagrantbox.boxutil` – `dir_to_box()`, `write_metadata()`,
  `copy_contents()`, `link_file()`, `create_dummy_box()` and
  `InvalidCompressionLevelError`.
- `vagrantbox.artifact` – `BoxArtifact`, the box file that was written.
- `vagrantbox.templating` – `render()` and `TemplateError`.
- `vagrantbox.cloud_client` – `VagrantCloudClient`, `connect()`,
  `VagrantCloudError`, `VagrantCloudErrors`, `Box`, `Version`,
  `CloudProvider`, `Upload`.
- `vagrantbox.cloud_artifact` – `CloudArtifact`.

## Supported providers

Each known builder id maps to a provider name; `available_providers()`
returns those names, sorted and without duplicates:

- cloud images: `aws`, `azure`, `digitalocean`, `docker`, `google`, `scaleway`
- local images: `hyperv`, `libvirt`, `lxc`, `parallels`, `virtualbox`, `vmware`

The cloud providers only write a `Vagrantfile` that points at the built
image; all of them except `docker` ask for the input artifact to be kept.
The local providers copy, hard-link or unpack the image files into the box.

## Building a box

```python
import sys

from vagrantbox.core import StaticArtifact, Ui
from vagrantbox.postprocessor import PostProcessor

processor = PostProcessor()
processor.configure({
    "output": "boxes/{{ .BuildName }}_{{ .Provider }}.box",
    "compression_level": 6,
    "include": ["README.box"],
    "override": {"aws": {"compression_level": 9}},
})

ui = Ui(sys.stdout)
artifact = StaticArtifact(builder_id_value="mitchellh.amazonebs", id_value="us-east-1:ami-1234")
box, keep_input, keep_forced = processor.post_process(ui, artifact)
print(box)  # 'aws' provider box: boxes/..._aws.box
```

The provider is chosen from the artifact's builder id, or forced with the
`provider_override` option. `post_process` returns the `BoxArtifact`, whether
the input artifact should be kept, and `True` to say that choice is forced.
An unknown builder id raises `ValueError`.

Before the real box, a throwaway box is built in a temporary directory to
check that the host can create one.

Configuration options:

| option                           | meaning                                                                 |
|----------------------------------|-------------------------------------------------------------------------|
| `output`                         | path of the box; default `packer_{{ .BuildName }}_{{.Provider}}.box`    |
| `compression_level`              | gzip level from -1 to 9; 0 writes a plain tar; default -1               |
| `include`                        | extra files copied into the box                                         |
| `vagrantfile_template`           | file whose rendered contents are appended to the generated Vagrantfile |
| `vagrantfile_template_generated` | skip the check that the template exists at configure time              |
| `provider_override`              | use this provider regardless of the builder id                          |
| `override`                       | per-provider option overrides, keyed by provider name                   |
| `packer_build_name`              | value of `{{ .BuildName }}` in templates                                |
| `packer_user_variables`          | values for `{{ user `name` }}` in templates                             |

Unknown keys, values of the wrong type, a missing `vagrantfile_template` or an
invalid `provider_override` raise `vagrantbox.postprocessor.ConfigError`.
`specific_config(name)` returns the configuration with the overrides for one
provider applied.

Templates understand field lookups (`{{ .Provider }}`, `{{ .ArtifactId }}`,
`{{ .BuildName }}`), `{{ user `name` }}`, `{{ timestamp }}`, comments and
`{{-` / `-}}` whitespace trimming; anything else raises `TemplateError`.

## Lower-level helpers

```python
from vagrantbox.boxutil import dir_to_box, write_metadata
from vagrantbox.local_providers import size_in_megabytes

write_metadata("staging", {"provider": "virtualbox"})
dir_to_box("out/my.box", "staging", None, 6)

size_in_megabytes("2G")   # 2048
size_in_megabytes("512")  # 512, megabytes by default
```

`write_metadata` leaves an existing `metadata.json` alone. `dir_to_box`
raises `InvalidCompressionLevelError` for a level outside -1..9.
`decompress_ova` unpacks the files of a tar archive flat into a directory,
using only the base name of each member.

## Vagrant Cloud

```python
from vagrantbox.cloud_client import Box, VagrantCloudErrors, connect

client = connect("https://vagrantcloud.example.com/api/v1", "token", False)
response = client.get("box/myorg/mybox")
if response.status_code == 200:
    box = Box.from_dict(response.json())
    existing = box.has_version("1.0.0")
else:
    print(VagrantCloudErrors.from_response(response).format_errors())
```

`connect` checks the token against the `authenticate` endpoint and raises
`VagrantCloudError` when the server refuses it. The client also offers
`post`, `put`, `delete`, `upload`, `direct_upload` and `callback`; each
returns the `requests.Response` as it came back.

## What the package does not do

There is no command-line program; everything is used from Python. On the
Vagrant Cloud side the package gives the HTTP client and the data types, but
no ready-made workflow that verifies a box, creates the version and provider,
uploads the file and releases the version in one call; those requests are
made by the caller.