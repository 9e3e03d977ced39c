"""Entry point for vpn_mesh."""

from .cli import cli


def main() -> None:
    """Entry point for the vpn-mesh CLI."""
    cli()


if __name__ == "__main__":
    main()
