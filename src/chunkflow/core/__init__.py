"""Core chunking pipeline, model-call capability, and errors for chunkflow."""
