"""Shared pytest configuration for the serdegen tests."""


def pytest_configure(config):
    """Keep the terminal report short; describe blocks already name each test."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False
