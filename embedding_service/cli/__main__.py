"""Allow ``python -m embedding_service.cli`` execution."""

from embedding_service.cli.ingest import main

main()
