"""Main module for feedkeeper MCP server.

This module allows the server to be run as a Python module using:
python -m feedkeeper

It delegates to the server application's main function.
"""

from feedkeeper.server.app import main

if __name__ == "__main__":
    main()
