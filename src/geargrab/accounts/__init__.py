"""Marketplace account provisioning."""

from .provisioner import (
    AccountProvisioner,
    DatabaseAccountProvisioner,
    InMemoryAccountProvisioner,
    ProvisionedAccount,
)
from .security import hash_password, verify_password

__all__ = [
    "AccountProvisioner",
    "DatabaseAccountProvisioner",
    "InMemoryAccountProvisioner",
    "ProvisionedAccount",
    "hash_password",
    "verify_password",
]
