#!/usr/bin/env python3
"""
Run script for Taptic

Usage:
    python run_taptic.py run                    # Listen and alert
    python run_taptic.py classify-file a.wav    # Classify a recording
    python run_taptic.py send "Smoke alarm"     # Broadcast one detection
    python run_taptic.py history                # Show detection history
    python run_taptic.py benchmark              # Time classifier inference

Make sure to install dependencies first:
    pip install -e .
"""

import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from taptic.main import main

if __name__ == '__main__':
    sys.exit(main())
