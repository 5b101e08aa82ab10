"""SPL token bindings and amount helpers."""
