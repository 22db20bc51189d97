"""Playback — timing, reveal scheduling and headless simulation of parsed conversations."""
