"""
SafeWave - HTTP API

REST endpoints for the SOS flow, contacts, location and automated
detection. The call relay lives in safewave.telephony.
"""
