#!/usr/bin/env python3
"""
exprsplice entry point.

Usage: python exprsplice.py "EXPR" [-b bindings.R ...] [-D 'name <- quote(...)' ...]
"""

from exprsplice.splicer import main

if __name__ == '__main__':
    main()
