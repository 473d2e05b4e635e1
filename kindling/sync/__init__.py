"""Component synchronization — the engine behind install, update, unlock and uninstall.

This package provides:
- Source resolution: local directories and ephemeral git clones
- Manifests: validated component self-descriptions and hooks
- Rehoming: rewriting component namespaces to the host's
- Tracking: content hashes, tracking markers and the lock store
- Lifecycle: the install/update/unlock/uninstall state machine
"""
