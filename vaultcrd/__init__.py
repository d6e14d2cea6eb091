"""Models, unseal arguments, listers and an in-memory client for the Vault custom resource."""

__version__ = "0.1.0"