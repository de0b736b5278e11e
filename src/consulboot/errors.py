# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/consulboot/errors.py


class ConsulBootError(RuntimeError):
    """Base class for failures that abort a configuration pass."""


class MissingRequiredArgument(ConsulBootError):
    """Raised when settings are incomplete before discovery begins."""


class MetadataUnavailable(ConsulBootError):
    """Raised when the instance metadata endpoint is unreachable or malformed."""


class AzureAuthError(ConsulBootError):
    """Raised when the service principal login fails."""


class InventoryUnavailable(ConsulBootError):
    """Raised when a control-plane listing call fails."""


class ScaleSetNotFound(InventoryUnavailable):
    """Raised when a named scale set does not exist (HTTP 404)."""


class ArtifactWriteError(ConsulBootError):
    pass


class SupervisorReloadError(ConsulBootError):
    pass
