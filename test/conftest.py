"""
Test configuration for Rey tests
"""

import io
import sys
from pathlib import Path

import pytest

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def output():
  """In-memory stream collecting everything a program prints"""
  return io.StringIO()
