"""Test doubles for the network, yt-dlp and the browser."""
