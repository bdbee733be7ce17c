"""
SafeWave - Personal Safety Alerting Package

This package contains the alerting client and its call relay:
- Distress detection (sampling, debounce accumulator)
- Alert lifecycle arbitration with a cancel window
- Multi-channel notification dispatch (email, voice call)
- Call relay endpoint forwarding to the voice provider
"""

__version__ = "0.1.0"
