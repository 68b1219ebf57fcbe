"""
Shared test setup for GPU Course Setup.
"""

import sys
from pathlib import Path

# Make the package importable without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))
