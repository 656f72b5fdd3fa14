STANDARD_LOG_LEVELS = {
    "DEBUG": {"icon": "🕸️", "loguru_color": "<fg #DC5F00>"},
    "INFO": {"icon": "📰", "loguru_color": "<fg #FC5F39>"},
    "WARNING": {"icon": "⚠️", "loguru_color": "<fg #DC5F00>"},
    "ERROR": {"icon": "❌", "loguru_color": "<fg #ff0000>"},
    "CRITICAL": {"icon": "💀", "loguru_color": "<fg #ff0000>"},
}

CUSTOM_LOG_LEVELS = {
    "GATEWAY": {"icon": "🌠", "loguru_color": "<fg #7871d6>", "no": 50},
    "API": {"icon": "👾", "loguru_color": "<fg #006989>", "no": 45},
    "AUTH": {"icon": "🔒", "loguru_color": "<fg #71d6d6>", "no": 42},
    "SCRAPER": {"icon": "👻", "loguru_color": "<fg #d6bb71>", "no": 40},
    "STREAM": {"icon": "🎬", "loguru_color": "<fg #d171d6>", "no": 35},
    "PROXY": {"icon": "🛰️", "loguru_color": "<fg #5fba64>", "no": 25},
}
