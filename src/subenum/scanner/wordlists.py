"""Wordlists for DNS brute force and permutation generation.

These are data, not logic. The brute force uses the flattened list of every
category; category sizes are only reported through GET /api/config.
"""

from typing import Dict, List

COMMON_SUBDOMAINS: Dict[str, List[str]] = {
    "common": [
        "www", "mail", "ftp", "admin", "test", "dev", "api", "blog", "shop", "forum",
        "news", "help", "support", "mobile", "m", "app", "apps", "secure", "portal",
        "dashboard", "panel", "control", "manage", "manager", "status", "health",
    ],
    "development": [
        "dev", "test", "stage", "staging", "demo", "sandbox", "beta", "alpha", "qa",
        "uat", "prod", "production", "preview", "dev-api", "test-api", "staging-api",
        "dev-www", "test-www", "staging-www", "local", "localhost", "development",
    ],
    "infrastructure": [
        "cdn", "static", "assets", "media", "images", "img", "js", "css", "files",
        "upload", "download", "backup", "archive", "storage", "s3", "ftp", "sftp",
        "git", "svn", "repo", "jenkins", "ci", "build", "deploy", "docker",
    ],
    "services": [
        "api", "api1", "api2", "v1", "v2", "v3", "ws", "webservice", "service",
        "auth", "oauth", "sso", "login", "signin", "signup", "register", "account",
        "profile", "user", "users", "admin", "administrator", "root", "super",
    ],
    "communication": [
        "mail", "email", "smtp", "pop", "pop3", "imap", "webmail", "mx", "mx1", "mx2",
        "chat", "irc", "xmpp", "sip", "voip", "conference", "meet", "zoom", "teams",
        "slack", "discord", "telegram", "whatsapp", "messenger", "support",
    ],
    "databases": [
        "db", "database", "mysql", "postgres", "mongodb", "redis", "elastic", "es",
        "kibana", "grafana", "prometheus", "influx", "clickhouse", "cassandra",
        "neo4j", "couchdb", "rethinkdb", "memcached", "sql", "nosql",
    ],
    "monitoring": [
        "monitor", "monitoring", "metrics", "logs", "logging", "analytics", "stats",
        "grafana", "prometheus", "nagios", "zabbix", "splunk", "elk", "kibana",
        "datadog", "newrelic", "sentry", "bugsnag", "rollbar", "pingdom",
    ],
}

PERMUTATION_PREFIXES = [
    "dev", "test", "stage", "staging", "prod", "production",
    "www", "api", "admin", "app", "mobile", "m",
]

PERMUTATION_SUFFIXES = [
    "dev", "test", "stage", "staging", "prod", "production",
    "api", "admin", "backup", "old", "new",
]

NUMBERED_PREFIXES = ["www", "mail", "ftp"]
NUMBERED_RANGE = range(1, 11)


def flatten(categories: Dict[str, List[str]]) -> List[str]:
    """All words across categories, first occurrence order, no repeats."""
    seen = set()
    words = []
    for group in categories.values():
        for word in group:
            if word not in seen:
                seen.add(word)
                words.append(word)
    return words


def category_sizes(categories: Dict[str, List[str]]) -> Dict[str, int]:
    return {name: len(words) for name, words in categories.items()}
