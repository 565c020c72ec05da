"""Bitcoin helpers, parsing, supply arithmetic, logging and metrics."""
