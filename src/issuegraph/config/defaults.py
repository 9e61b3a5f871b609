"""
issuegraph.config.defaults - Default configuration values.
"""

DEFAULT_CONFIG = {
    "tracker": {
        "base_url": "",
        "email": "",
        "api_token": "",
        "bearer_token": "",
        "session_cookies": "",
        "timeout": 30,
        "requests_per_second": 10,
        "max_concurrency": 8,
    },
    "fields": {
        # Epic Link custom field
        "group_link": "customfield_10102",
    },
    "links": {
        "containment_id": "10600",
        "containment_name": "parent",
        "coverage_id": "10703",
        "coverage_name": "requirement",
    },
    "hierarchy": {
        "default_query": "assignee = currentUser() AND statusCategory != Done",
        "max_results": 200,
        "child_limit": 20,
        "max_depth": 10,
        "group_issue_types": ["Epic", "Эпик"],
        "group_member_query": '"Epic Link" = {key}',
    },
    "structure": {
        # Empty id disables the folder overlay
        "id": "",
        "max_results": 1000,
    },
    "logging": {
        "level": "INFO",
        "json": False,
    },
    "state": {
        "last_issue_file": "~/.issuegraph-last-issue.json",
    },
}
