"""
Command-line interface: Typer app and the terminal drill runner.
"""
