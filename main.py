#!/usr/bin/env python3
"""Hysteria 2 server installer — CLI entrypoint."""

from autohy2.autohy2 import main

if __name__ == "__main__":
    main()
