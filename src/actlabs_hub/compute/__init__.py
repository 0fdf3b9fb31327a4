"""
actlabs_hub.compute

Cloud provider adapters.

Responsibilities:
- `arm`: compute lifecycle (container groups, identities, ownership checks).
- `storage`: hub storage account network posture used by auto-remediation.
"""
