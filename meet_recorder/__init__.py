"""
Meet Recorder - records Google Meet audio with a headless browser.
"""

__version__ = "1.0.0"
