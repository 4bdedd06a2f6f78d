"""Command line interface (``tutor``)."""
