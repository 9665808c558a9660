"""
Module entry point for: python -m edition_parser

Allows running the pipeline directly as a module:
    python -m edition_parser process <export_root> [options]
    python -m edition_parser inspect <export_root> [options]
    python -m edition_parser article <article_id> [options]
    python -m edition_parser edition <edition_id> [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
