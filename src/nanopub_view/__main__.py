"""Entry point for python -m nanopub_view execution.

This module enables running nanopub-view as a module:
    python -m nanopub_view --help
    python -m nanopub_view view np.trig -t template.trig
"""

from nanopub_view.cli import app

if __name__ == "__main__":
    app()
