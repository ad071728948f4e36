"""
HTTP API for the Meet Recorder.
"""
