"""Content-generation collaborators (AI-authored lessons)."""
