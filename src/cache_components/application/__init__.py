"""Application layer – the cache engine and its collaborators."""
