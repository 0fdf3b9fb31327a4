"""
actlabs_hub.reconcilers

Background control loops.

Responsibilities:
- `auto_destroy`: tear down idle servers.
- `auto_remediate`: keep the hub storage account reachable.
- `supervisor`: restart loops after unexpected faults within a budget.
"""
