"""lgtm-gtfo: clean up GitHub notification emails and list pending reviews."""

__version__ = "0.1.0"
