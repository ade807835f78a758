"""Command-line interface (``semspine``), built on Typer and Rich."""
