"""Test package for the Vision Trainer.

Core tests drive the engines with a fake clock and an explicitly drained
frame scheduler. UI smoke tests run headlessly using pygame's dummy video
driver. Run ``pytest`` from the project root.
"""
