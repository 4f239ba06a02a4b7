"""
Entry point for running lbp_sim as a module.

Usage:
    python -m lbp_sim single --demand bullish --sell loyal
    python -m lbp_sim.cli paths --current-step 40
"""

from .cli import main

if __name__ == "__main__":
    main()
