"""Shared test fixtures for opdep tests."""

import sys
from pathlib import Path

# Add src to path so tests can import opdep
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
