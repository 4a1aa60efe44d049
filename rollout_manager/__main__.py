"""
rollout-manager module entry point: python -m rollout_manager.
"""

import sys

from rollout_manager.cli import main

if __name__ == "__main__":
    sys.exit(main())
