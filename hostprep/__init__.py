"""hostprep — Amazon Linux 2023 host provisioning sequencer."""

__version__ = "0.1.0"
