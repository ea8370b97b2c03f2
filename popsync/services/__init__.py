"""Clients for the metadata, artwork and torrent index upstreams."""
