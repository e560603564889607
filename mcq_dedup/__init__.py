"""Near-duplicate detection and cleanup for the shared MCQ collection."""
