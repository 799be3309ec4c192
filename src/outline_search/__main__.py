"""Entry point for the outline-search MCP server."""

from outline_search.server import create_server


def main() -> None:
    """Run the outline-search MCP server."""
    server = create_server()
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
