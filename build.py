#!/usr/bin/env python3
from sitetree.cli import main

if __name__ == "__main__":
    main()
