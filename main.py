"""
MasterMeter - Main Entry Point

Example usage:
    python main.py path/to/master.wav
    python main.py --config config/config.yaml path/to/master.wav
    python main.py --batch path/to/masters/
"""

import sys

from mastermeter.cli import main

if __name__ == "__main__":
    sys.exit(main())
