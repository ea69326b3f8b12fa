"""Business logic layer for files app.

This package contains all business logic for the file lifecycle:
- Quota ledger (admission control, release, Pro tiers)
- File registry (owner-scoped records of stored files)
- Upload, download, list and delete of a user's files
- Administrator operations on accounts (cascade delete, Pro toggle)

All business logic should be implemented here, separate from
models (data layer) and infrastructure (storage, validation).

Reference: https://github.com/dry-python
for decoupling business logic from Django views.
"""
