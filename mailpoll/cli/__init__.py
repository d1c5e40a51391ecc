"""Command line interface for mailpoll."""
