"""Build Vagrant boxes from machine image artifacts and talk to the Vagrant Cloud API."""

__version__ = "0.1.0"