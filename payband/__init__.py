"""Attendance time segmentation and pay-bracket classification."""
