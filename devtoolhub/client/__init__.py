"""Local-first companion client: offline stores that reconcile with the DevToolHub API."""
