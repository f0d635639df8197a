"""Command line interface (``tutor-import`` / ``python -m tutor_import.cli``)."""
