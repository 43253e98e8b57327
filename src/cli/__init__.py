"""Command-line tools for corpusFlow.

- ``python -m src.cli.ingest`` (or ``python -m src.cli``) -- ingest files and
  directories, search the chunk store, and inspect ingestion status.
"""
