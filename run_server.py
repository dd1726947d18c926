#!/usr/bin/env python3
"""Launcher for the paperdraft MCP server."""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from paperdraft.server import main

if __name__ == "__main__":
    main()
