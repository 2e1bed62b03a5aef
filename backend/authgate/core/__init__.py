"""Application plumbing: configuration, extensions, logging and errors."""
