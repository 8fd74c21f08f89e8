"""Context assembly and inline suggestion lifecycle for Ansible Lightspeed completions."""

__version__ = "0.1.0"
