"""
Run lwshell as a module: python -m lwshell connect 3
"""

from .cli import main

if __name__ == "__main__":
    main()
