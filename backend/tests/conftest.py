"""Shared test configuration."""
import sys
import os

# Add backend directory to path so imports work
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Keep the bundled event catalog and a quiet log for all tests
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("COMMAND_RATE_LIMIT", "1000/second")
