"""Infrastructure layer for files app.

This package contains integrations with external systems:
- Local filesystem blob storage (staging, commit, removal)
- Upload validation (filename sanitizing, allow-list)

Keep infrastructure concerns separate from business logic.
"""
