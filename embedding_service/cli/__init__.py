"""Command-line tools for the embedding service.

- ``python -m embedding_service.cli load-csv`` -- bulk-load texts from a CSV file
- ``python -m embedding_service.cli search`` -- run a similarity search
- ``python -m embedding_service.cli stats`` -- show index name, schema and size
- ``python -m embedding_service.cli purge`` -- delete every document

All commands use argparse and build their services with the same factory
functions as the web app.
"""
