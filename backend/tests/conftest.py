"""
Pytest configuration for the backend test suite.
"""

import sys
from pathlib import Path

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
if str(backend_path) not in sys.path:
    sys.path.insert(0, str(backend_path))


# Configure pytest
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "e2e: marks tests as end-to-end (requires a real FFmpeg)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow"
    )
