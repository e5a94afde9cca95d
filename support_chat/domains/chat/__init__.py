"""Chat domain - support sessions, messages, read tracking, fanout."""
