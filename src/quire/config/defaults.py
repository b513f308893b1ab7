"""
quire.config.defaults - Default configuration values
"""

DEFAULT_CONFIG = {
    "documents": {
        "root": ".",
        "extension": ".md",
    },
    "sections": {
        "max_batch_size": 100,
        "max_heading_title_length": 200,
        "max_section_body_length": 100_000,
        "max_headings_per_document": 1000,
    },
    "relations": {
        "link_depth": 2,
        "max_link_depth": 3,
        "similarity_threshold": 0.6,
        "max_similar": 10,
    },
    "logging": {
        "level": "WARNING",
    },
    "mcp": {
        "server_name": "quire",
        "mutation_log_size": 200,
    },
}

CONFIG_FILENAME = ".quire.toml"
ENV_PREFIX = "QUIRE_"
