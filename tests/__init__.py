"""Test suite for the diff_images package."""
